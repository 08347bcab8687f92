"""
Rentalman API ViewSets.

RentalError responses:
    NotFound      → 404
    InvalidState  → 409 (APPROVAL_REQUIRED carries the report)
    anything else → 400
"""

from rest_framework import status, viewsets
from rest_framework.decorators import action
from rest_framework.permissions import IsAuthenticated
from rest_framework.response import Response

from rentalman.exceptions import InvalidState, NotFound, RentalError
from rentalman.models import Alert, EquipmentItem, WorkOrder
from rentalman.service import Engine

from .serializers import (
    AlertSerializer,
    AvailabilityQuerySerializer,
    ChangeDateSerializer,
    EquipmentItemSerializer,
    EscalateAlertSerializer,
    ResolveAlertSerializer,
    ValidateDateSerializer,
    WorkOrderSerializer,
)


def error_response(error: RentalError) -> Response:
    if isinstance(error, NotFound):
        code = status.HTTP_404_NOT_FOUND
    elif isinstance(error, InvalidState):
        code = status.HTTP_409_CONFLICT
    else:
        code = status.HTTP_400_BAD_REQUEST
    return Response({"error": error.as_dict()}, status=code)


class EquipmentItemViewSet(viewsets.ReadOnlyModelViewSet):
    """
    ViewSet for EquipmentItem (read-only).

    availability: free units of the item in a date range
    occupancy: who holds which items in a date range
    """

    permission_classes = [IsAuthenticated]
    lookup_value_regex = r"[0-9]+"
    queryset = EquipmentItem.objects.all()
    serializer_class = EquipmentItemSerializer

    @action(detail=True, methods=["get"])
    def availability(self, request, pk=None):
        """
        GET /api/rentalman/items/{pk}/availability/?from=2025-02-10&to=2025-02-12
        """
        query = AvailabilityQuerySerializer(
            data={
                "date_from": request.query_params.get("from"),
                "date_to": request.query_params.get("to"),
            }
        )
        if not query.is_valid():
            return Response(query.errors, status=status.HTTP_400_BAD_REQUEST)

        try:
            result = Engine.check_availability(
                int(pk),
                query.validated_data["date_from"],
                query.validated_data.get("date_to"),
            )
        except RentalError as e:
            return error_response(e)
        return Response(result.as_dict())

    @action(detail=False, methods=["get"])
    def occupancy(self, request):
        """
        GET /api/rentalman/items/occupancy/?from=2025-02-10&to=2025-02-12&item=3&item=7
        """
        query = AvailabilityQuerySerializer(
            data={
                "date_from": request.query_params.get("from"),
                "date_to": request.query_params.get("to"),
            }
        )
        if not query.is_valid():
            return Response(query.errors, status=status.HTTP_400_BAD_REQUEST)

        date_from = query.validated_data["date_from"]
        item_ids = [int(i) for i in request.query_params.getlist("item") if i.isdigit()] or None
        try:
            calendar = Engine.occupancy_calendar(
                date_from, query.validated_data.get("date_to") or date_from, item_ids
            )
        except RentalError as e:
            return error_response(e)
        return Response(calendar)


class WorkOrderViewSet(viewsets.ReadOnlyModelViewSet):
    """
    ViewSet for WorkOrder.

    validate_date: graded conflicts for a candidate date (no writes)
    change_date: reschedule, refused with 409 when approval is required
    """

    permission_classes = [IsAuthenticated]
    lookup_value_regex = r"[0-9]+"
    queryset = WorkOrder.objects.select_related("rental", "vehicle").prefetch_related(
        "crew", "date_changes"
    )
    serializer_class = WorkOrderSerializer

    @action(detail=True, methods=["post"], url_path="validate-date")
    def validate_date(self, request, pk=None):
        """
        POST /api/rentalman/work-orders/{pk}/validate-date/
        {"date": "2025-03-04"}
        """
        serializer = ValidateDateSerializer(data=request.data)
        if not serializer.is_valid():
            return Response(serializer.errors, status=status.HTTP_400_BAD_REQUEST)

        try:
            report = Engine.validate_date_change(int(pk), serializer.validated_data["date"])
        except RentalError as e:
            return error_response(e)
        return Response(report.as_dict())

    @action(detail=True, methods=["post"], url_path="change-date")
    def change_date(self, request, pk=None):
        """
        POST /api/rentalman/work-orders/{pk}/change-date/
        {"date": "2025-03-04", "reason": "Cliente pidió", "force": false}
        """
        serializer = ChangeDateSerializer(data=request.data)
        if not serializer.is_valid():
            return Response(serializer.errors, status=status.HTTP_400_BAD_REQUEST)

        data = serializer.validated_data
        try:
            wo, report = Engine.change_date(
                int(pk),
                data["date"],
                reason=data["reason"],
                user=request.user,
                force=data["force"],
            )
        except RentalError as e:
            return error_response(e)

        return Response(
            {
                "work_order": WorkOrderSerializer(wo).data,
                "report": report.as_dict(),
            }
        )


class AlertViewSet(viewsets.ReadOnlyModelViewSet):
    """
    ViewSet for Alert.

    pending: pending alerts, most severe first
    summary: counts by status, severity and kind
    resolve: close as resuelta or descartada
    escalate: raise severity one step
    """

    permission_classes = [IsAuthenticated]
    lookup_value_regex = r"[0-9]+"
    queryset = Alert.objects.select_related("work_order")
    serializer_class = AlertSerializer

    def get_queryset(self):
        qs = super().get_queryset()
        for param in ("status", "severity", "kind", "work_order"):
            value = self.request.query_params.get(param)
            if value:
                qs = qs.filter(**{param: value})
        return qs

    @action(detail=False, methods=["get"])
    def pending(self, request):
        """GET /api/rentalman/alerts/pending/"""
        alerts = Engine.pending_alerts()
        return Response(AlertSerializer(alerts, many=True).data)

    @action(detail=False, methods=["get"])
    def summary(self, request):
        """GET /api/rentalman/alerts/summary/"""
        return Response(Engine.alert_summary())

    @action(detail=True, methods=["post"])
    def resolve(self, request, pk=None):
        """
        POST /api/rentalman/alerts/{pk}/resolve/
        {"notes": "Subalquilado a proveedor", "outcome": "resuelta"}
        """
        serializer = ResolveAlertSerializer(data=request.data)
        if not serializer.is_valid():
            return Response(serializer.errors, status=status.HTTP_400_BAD_REQUEST)

        try:
            alert = Engine.resolve_alert(
                int(pk),
                user=request.user,
                notes=serializer.validated_data["notes"],
                outcome=serializer.validated_data["outcome"],
            )
        except RentalError as e:
            return error_response(e)
        return Response(AlertSerializer(alert).data)

    @action(detail=True, methods=["post"])
    def escalate(self, request, pk=None):
        """
        POST /api/rentalman/alerts/{pk}/escalate/
        {"notes": "Requiere gerencia"}
        """
        serializer = EscalateAlertSerializer(data=request.data)
        if not serializer.is_valid():
            return Response(serializer.errors, status=status.HTTP_400_BAD_REQUEST)

        try:
            alert = Engine.escalate_alert(int(pk), serializer.validated_data["notes"])
        except RentalError as e:
            return error_response(e)
        return Response(AlertSerializer(alert).data)
