"""
Admin configuration for core app
"""
from django.contrib import admin
from .models import AppDocument


@admin.register(AppDocument)
class AppDocumentAdmin(admin.ModelAdmin):
    """App Document Admin"""
    list_display = ['key', 'updated_at']
    search_fields = ['key']
    readonly_fields = ['updated_at']
    ordering = ['key']
