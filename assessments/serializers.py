"""
Serializers for assessments app (request bodies and JSON-safe responses)
"""
from decimal import Decimal

from rest_framework import serializers

from assessments.records import VETTING_PHASES


def to_json(value):
    """Decimals from the scoring engine as JSON numbers (ints when whole)."""
    if isinstance(value, Decimal):
        return int(value) if value == value.to_integral_value() else float(value)
    if isinstance(value, dict):
        return {k: to_json(v) for k, v in value.items()}
    if isinstance(value, (list, tuple)):
        return [to_json(v) for v in value]
    return value


class ScoreResultSerializer(serializers.Serializer):
    """Scoring engine result"""
    earnedPoints = serializers.SerializerMethodField()
    maxPoints = serializers.SerializerMethodField()
    percent = serializers.IntegerField()
    requiresManualReview = serializers.BooleanField(source='requires_manual_review')
    breakdown = serializers.SerializerMethodField()

    def get_earnedPoints(self, obj):
        return to_json(obj['earned_points'])

    def get_maxPoints(self, obj):
        return to_json(obj['max_points'])

    def get_breakdown(self, obj):
        return to_json(obj['breakdown'])


class SubmitSerializer(serializers.Serializer):
    """Trainee submission body: {answers, force}"""
    answers = serializers.JSONField(required=False, default=dict)
    force = serializers.BooleanField(required=False, default=False)

    def validate_answers(self, value):
        if value is None:
            return {}
        if not isinstance(value, (dict, list)):
            raise serializers.ValidationError('answers must be an object keyed by question index')
        return value


class MarkSerializer(serializers.Serializer):
    """Administrator marks: {marks: {questionIndex: points}}"""
    marks = serializers.DictField(child=serializers.JSONField(), allow_empty=True)


class CaptureScoresSerializer(serializers.Serializer):
    """Manual score capture for one group"""
    groupId = serializers.CharField()
    assessment = serializers.CharField(required=False, allow_blank=True, default='')
    phase = serializers.CharField()
    vettingTopic = serializers.CharField(required=False, allow_blank=True, allow_null=True, default=None)
    date = serializers.DateField(required=False, allow_null=True, default=None)
    scores = serializers.DictField(child=serializers.JSONField())

    def validate(self, attrs):
        if attrs['phase'] not in VETTING_PHASES and not (attrs.get('assessment') or '').strip():
            raise serializers.ValidationError({'assessment': 'This field is required.'})
        return attrs
