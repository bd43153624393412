"""Django admin for generation and patch jobs."""
from django.contrib import admin

from demo_generator.models import ChunkedJobState, DemoTenantMetadata, GenerationJob, KpiOverride, PatchJob


class ChunkedJobStateInline(admin.StackedInline):
    model = ChunkedJobState
    extra = 0
    can_delete = False
    readonly_fields = ("phase", "cursor", "tallies", "version", "invocations", "lease_token", "lease_expires_at")


@admin.register(GenerationJob)
class GenerationJobAdmin(admin.ModelAdmin):
    list_display = ("id", "mode", "status", "progress", "tenant", "verification_passed", "created_at")
    list_filter = ("status", "mode", "verification_passed")
    search_fields = ("id", "seed", "requested_by")
    readonly_fields = (
        "seed",
        "config",
        "monthly_plan",
        "metrics",
        "verification_report",
        "logs",
        "started_at",
        "completed_at",
    )
    inlines = [ChunkedJobStateInline]


@admin.register(PatchJob)
class PatchJobAdmin(admin.ModelAdmin):
    list_display = ("id", "tenant", "mode", "plan_type", "status", "from_month", "to_month", "created_at")
    list_filter = ("status", "mode", "plan_type")
    readonly_fields = ("plan", "before_kpis", "after_kpis", "diff_report", "metrics", "logs")


@admin.register(DemoTenantMetadata)
class DemoTenantMetadataAdmin(admin.ModelAdmin):
    list_display = ("tenant", "industry", "country", "start_month", "is_demo_generated")
    list_filter = ("industry", "is_demo_generated")


@admin.register(KpiOverride)
class KpiOverrideAdmin(admin.ModelAdmin):
    list_display = ("tenant", "month", "closed_won_count", "closed_won_value", "patch_job")
    list_filter = ("month",)
