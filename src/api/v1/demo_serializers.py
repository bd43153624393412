"""Serializers for the demo generator endpoints."""
from __future__ import annotations

from django.core.exceptions import ObjectDoesNotExist
from rest_framework import serializers

from demo_generator.models import ChunkedJobState, GenerationJob, PatchJob


class ChunkedJobStateSerializer(serializers.ModelSerializer):
    class Meta:
        model = ChunkedJobState
        fields = ["phase", "cursor", "tallies", "version", "invocations", "lease_expires_at", "updated_at"]
        read_only_fields = fields


class GenerationJobSerializer(serializers.ModelSerializer):
    """Job status as polled by the admin UI."""

    tenant_name = serializers.CharField(source="tenant.name", read_only=True, default=None)
    chunk_state = serializers.SerializerMethodField()

    class Meta:
        model = GenerationJob
        fields = [
            "id",
            "mode",
            "status",
            "progress",
            "current_step",
            "tenant",
            "tenant_name",
            "seed",
            "config",
            "metrics",
            "verification_passed",
            "verification_report",
            "error_message",
            "logs",
            "requested_by",
            "chunk_state",
            "created_at",
            "started_at",
            "completed_at",
            "updated_at",
        ]
        read_only_fields = fields

    def get_chunk_state(self, obj):
        try:
            state = obj.chunk_state
        except ObjectDoesNotExist:
            return None
        return ChunkedJobStateSerializer(state).data


class GenerationJobListSerializer(serializers.ModelSerializer):
    tenant_name = serializers.CharField(source="tenant.name", read_only=True, default=None)

    class Meta:
        model = GenerationJob
        fields = [
            "id",
            "mode",
            "status",
            "progress",
            "current_step",
            "tenant",
            "tenant_name",
            "verification_passed",
            "requested_by",
            "created_at",
            "completed_at",
        ]
        read_only_fields = fields


class PatchJobSerializer(serializers.ModelSerializer):
    class Meta:
        model = PatchJob
        fields = [
            "id",
            "tenant",
            "mode",
            "plan_type",
            "status",
            "progress",
            "current_step",
            "seed",
            "plan",
            "from_month",
            "to_month",
            "before_kpis",
            "after_kpis",
            "diff_report",
            "metrics",
            "error_message",
            "logs",
            "requested_by",
            "created_at",
            "started_at",
            "completed_at",
        ]
        read_only_fields = fields


class KpiQuerySerializer(serializers.Serializer):
    """``?from=YYYY-MM&to=YYYY-MM``; month format is checked by the aggregator."""

    from_month = serializers.CharField(max_length=7)
    to_month = serializers.CharField(max_length=7)

    def to_internal_value(self, data):
        return super().to_internal_value(
            {"from_month": data.get("from"), "to_month": data.get("to")},
        )


class ApplyPatchSerializer(serializers.Serializer):
    seed = serializers.CharField(max_length=64, required=False, allow_blank=True)
