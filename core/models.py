"""
Core models. AppDocument: one JSON document per key (tests, submissions, records, rosters, ...).
"""
from django.db import models


class AppDocument(models.Model):
    """
    Key-value document. The whole collection for a key is stored as one JSON value
    and rewritten on every save (read-modify-write by the caller).
    """
    key = models.CharField(max_length=100, unique=True)
    content = models.JSONField(null=True, blank=True)
    updated_at = models.DateTimeField(auto_now=True)

    class Meta:
        db_table = 'app_documents'
        verbose_name = 'App Document'
        verbose_name_plural = 'App Documents'
        ordering = ['key']

    def __str__(self):
        return self.key
