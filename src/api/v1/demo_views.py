"""Demo generator endpoints (admin only).

POST /api/v1/demo-generator/jobs/                       create a generation job
GET  /api/v1/demo-generator/jobs/                       list jobs (?status=&mode=)
GET  /api/v1/demo-generator/jobs/<id>/                  job status
POST /api/v1/demo-generator/jobs/<id>/continue/         run one chunk in-process
POST /api/v1/demo-generator/validate-plan/              validate a monthly plan
POST /api/v1/demo-generator/preview/                    preview a growth-curve allocation
GET  /api/v1/demo-generator/tenants/<id>/kpis/          monthly KPIs (?from=&to=)
POST /api/v1/demo-generator/tenants/<id>/patch/validate/
POST /api/v1/demo-generator/tenants/<id>/patch/apply/
GET  /api/v1/demo-generator/patch-jobs/<id>/
"""
from __future__ import annotations

import logging

from django.core.exceptions import ObjectDoesNotExist
from rest_framework import mixins, status, viewsets
from rest_framework.decorators import action
from rest_framework.permissions import IsAdminUser
from rest_framework.response import Response
from rest_framework.views import APIView

from api.v1.demo_serializers import (
    ApplyPatchSerializer,
    GenerationJobListSerializer,
    GenerationJobSerializer,
    KpiQuerySerializer,
    PatchJobSerializer,
)
from demo_generator import services
from demo_generator.exceptions import (
    ConfigError,
    DemoGeneratorError,
    JobConflictError,
    PatchBlockedError,
    PlanValidationError,
    TenantIneligibleError,
)
from demo_generator.models import GenerationJob

logger = logging.getLogger("demoforge")


def _requester(request) -> str:
    return getattr(request.user, "get_username", lambda: "")() or ""


def demo_error_response(exc: Exception) -> Response:
    """Translate a demo generator error into an HTTP response."""
    if isinstance(exc, ObjectDoesNotExist):
        return Response({"detail": "Ressource introuvable."}, status=status.HTTP_404_NOT_FOUND)
    body = {"detail": exc.message}
    if isinstance(exc, PlanValidationError):
        body["errors"] = exc.errors
        return Response(body, status=status.HTTP_400_BAD_REQUEST)
    if isinstance(exc, PatchBlockedError):
        body["blockers"] = exc.blockers
        return Response(body, status=status.HTTP_400_BAD_REQUEST)
    if isinstance(exc, ConfigError):
        return Response(body, status=status.HTTP_400_BAD_REQUEST)
    if isinstance(exc, TenantIneligibleError):
        return Response(body, status=status.HTTP_403_FORBIDDEN)
    if isinstance(exc, JobConflictError):
        return Response(body, status=status.HTTP_409_CONFLICT)
    logger.error("Unhandled demo generator error: %s", exc)
    return Response(body, status=status.HTTP_500_INTERNAL_SERVER_ERROR)


HANDLED_ERRORS = (DemoGeneratorError, ObjectDoesNotExist)


class GenerationJobViewSet(
    mixins.ListModelMixin,
    mixins.RetrieveModelMixin,
    viewsets.GenericViewSet,
):
    queryset = GenerationJob.objects.select_related("tenant", "chunk_state")
    serializer_class = GenerationJobSerializer
    permission_classes = [IsAdminUser]
    filterset_fields = ["status", "mode", "tenant"]
    ordering_fields = ["created_at", "completed_at", "status"]
    ordering = ["-created_at"]

    def get_serializer_class(self):
        if self.action == "list":
            return GenerationJobListSerializer
        return GenerationJobSerializer

    def create(self, request):
        try:
            created = services.start_generation(request.data, requested_by=_requester(request))
        except HANDLED_ERRORS as exc:
            return demo_error_response(exc)
        return Response(
            {
                "jobId": created["job_id"],
                "status": "pending",
                "estimatedSeconds": created["estimated_seconds"],
            },
            status=status.HTTP_202_ACCEPTED,
        )

    @action(detail=True, methods=["post"], url_path="continue")
    def continue_job(self, request, pk=None):
        job = self.get_object()
        try:
            result = services.continue_job(job.pk)
        except HANDLED_ERRORS as exc:
            return demo_error_response(exc)
        return Response(result)


class ValidatePlanView(APIView):
    permission_classes = [IsAdminUser]

    def post(self, request):
        try:
            return Response(services.validate_plan(request.data))
        except HANDLED_ERRORS as exc:
            return demo_error_response(exc)


class GrowthPreviewView(APIView):
    permission_classes = [IsAdminUser]

    def post(self, request):
        try:
            return Response(services.preview_growth(request.data))
        except HANDLED_ERRORS as exc:
            return demo_error_response(exc)


class TenantKpiView(APIView):
    permission_classes = [IsAdminUser]

    def get(self, request, tenant_id):
        query = KpiQuerySerializer(data=request.query_params)
        if not query.is_valid():
            return Response(
                {"detail": "Parametres from et to requis (format YYYY-MM).", "errors": query.errors},
                status=status.HTTP_400_BAD_REQUEST,
            )
        try:
            kpis = services.get_kpis(
                tenant_id,
                query.validated_data["from_month"],
                query.validated_data["to_month"],
            )
        except HANDLED_ERRORS as exc:
            return demo_error_response(exc)
        return Response({"tenantId": str(tenant_id), "months": kpis})


class PatchValidateView(APIView):
    permission_classes = [IsAdminUser]

    def post(self, request, tenant_id):
        try:
            return Response(services.validate_patch(tenant_id, request.data))
        except HANDLED_ERRORS as exc:
            return demo_error_response(exc)


class PatchApplyView(APIView):
    permission_classes = [IsAdminUser]

    def post(self, request, tenant_id):
        options = ApplyPatchSerializer(data=request.data)
        options.is_valid(raise_exception=True)
        try:
            patch_job_id = services.apply_patch(
                tenant_id,
                request.data,
                seed=options.validated_data.get("seed") or None,
                requested_by=_requester(request),
            )
        except HANDLED_ERRORS as exc:
            return demo_error_response(exc)
        return Response(
            {"patchJobId": patch_job_id, "status": "pending"},
            status=status.HTTP_202_ACCEPTED,
        )


class PatchJobDetailView(APIView):
    permission_classes = [IsAdminUser]

    def get(self, request, patch_job_id):
        try:
            job = services.get_patch_job(patch_job_id)
        except HANDLED_ERRORS as exc:
            return demo_error_response(exc)
        return Response(PatchJobSerializer(job).data)
