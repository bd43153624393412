"""Django admin for CRM entities."""
from django.contrib import admin

from crm.models import Activity, Company, Contact, Deal, PipelineStage, TeamMember, Tenant


class PipelineStageInline(admin.TabularInline):
    model = PipelineStage
    extra = 0
    ordering = ("position",)
    fields = ("position", "name", "probability", "is_won", "is_lost")


@admin.register(Tenant)
class TenantAdmin(admin.ModelAdmin):
    list_display = ("name", "country", "currency", "is_active", "created_at")
    list_filter = ("is_active", "country")
    search_fields = ("name",)
    inlines = [PipelineStageInline]


@admin.register(TeamMember)
class TeamMemberAdmin(admin.ModelAdmin):
    list_display = ("first_name", "last_name", "email", "role", "tenant")
    list_filter = ("role",)
    search_fields = ("first_name", "last_name", "email")


class DemoRecordAdmin(admin.ModelAdmin):
    list_filter = ("demo_generated", "demo_source_month")
    readonly_fields = ("demo_job_id", "demo_source_month", "demo_sequence", "updated_at")


@admin.register(Company)
class CompanyAdmin(DemoRecordAdmin):
    list_display = ("name", "industry", "tenant", "created_at")
    search_fields = ("name", "domain")


@admin.register(Contact)
class ContactAdmin(DemoRecordAdmin):
    list_display = ("first_name", "last_name", "status", "source", "tenant", "created_at")
    list_filter = DemoRecordAdmin.list_filter + ("status",)
    search_fields = ("first_name", "last_name", "email")


@admin.register(Deal)
class DealAdmin(DemoRecordAdmin):
    list_display = ("title", "value", "stage", "tenant", "created_at")
    search_fields = ("title",)


@admin.register(Activity)
class ActivityAdmin(DemoRecordAdmin):
    list_display = ("subject", "type", "tenant", "created_at")
    list_filter = DemoRecordAdmin.list_filter + ("type",)
