"""Main API URL router for /api/v1/."""
from django.urls import include, path
from rest_framework.routers import DefaultRouter

from api.v1 import demo_views

router = DefaultRouter()
router.register(r'demo-generator/jobs', demo_views.GenerationJobViewSet, basename='demo-generation-job')

urlpatterns = [
    path('', include(router.urls)),

    # Demo generator
    path('demo-generator/validate-plan/', demo_views.ValidatePlanView.as_view(), name='demo-validate-plan'),
    path('demo-generator/preview/', demo_views.GrowthPreviewView.as_view(), name='demo-growth-preview'),
    path('demo-generator/tenants/<uuid:tenant_id>/kpis/', demo_views.TenantKpiView.as_view(), name='demo-tenant-kpis'),
    path('demo-generator/tenants/<uuid:tenant_id>/patch/validate/', demo_views.PatchValidateView.as_view(), name='demo-patch-validate'),
    path('demo-generator/tenants/<uuid:tenant_id>/patch/apply/', demo_views.PatchApplyView.as_view(), name='demo-patch-apply'),
    path('demo-generator/patch-jobs/<uuid:patch_job_id>/', demo_views.PatchJobDetailView.as_view(), name='demo-patch-job-detail'),
]
