from rest_framework import mixins, status, viewsets
from rest_framework.decorators import action
from rest_framework.permissions import IsAuthenticated
from rest_framework.response import Response

from common.audit import create_audit_log_from_request
from common.pagination import StandardResultsSetPagination
from common.permissions import RoleCapabilityPermission
from core.views import require_company_id, scoped_queryset_for_user
from inventory.scanning import decode_scan
from inventory.serializers import ScanSerializer
from procurement import receiving as receiving_engine
from procurement import services
from procurement.models import PurchaseOrder, Receiving, Supplier
from procurement.serializers import (
    PurchaseOrderCreateSerializer,
    PurchaseOrderLineSerializer,
    PurchaseOrderLineUpdateSerializer,
    PurchaseOrderSerializer,
    ReceivingCreateSerializer,
    ReceivingItemInputSerializer,
    ReceivingItemSerializer,
    ReceivingItemUpdateSerializer,
    ReceivingSerializer,
    SupplierSerializer,
)


class SupplierViewSet(viewsets.ReadOnlyModelViewSet):
    queryset = Supplier.objects.all().order_by("code")
    serializer_class = SupplierSerializer
    permission_classes = [IsAuthenticated, RoleCapabilityPermission]
    permission_action_map = {"list": "procurement.view", "retrieve": "procurement.view"}

    def get_queryset(self):
        return scoped_queryset_for_user(super().get_queryset(), self.request.user)


class PurchaseOrderViewSet(
    mixins.ListModelMixin,
    mixins.RetrieveModelMixin,
    viewsets.GenericViewSet,
):
    queryset = PurchaseOrder.objects.select_related("supplier").prefetch_related("lines__part")
    serializer_class = PurchaseOrderSerializer
    pagination_class = StandardResultsSetPagination
    permission_classes = [IsAuthenticated, RoleCapabilityPermission]
    permission_action_map = {
        "list": "procurement.view",
        "retrieve": "procurement.view",
        "next_number": "procurement.view",
        "create": "purchase_order.manage",
        "update_line": "purchase_order.manage",
    }

    def get_queryset(self):
        qs = scoped_queryset_for_user(super().get_queryset(), self.request.user).order_by("-created_at")
        status_filter = self.request.query_params.get("status")
        if status_filter:
            qs = qs.filter(status=status_filter)
        return qs

    def create(self, request, *args, **kwargs):
        company_id = require_company_id(request.user)
        serializer = PurchaseOrderCreateSerializer(data=request.data)
        serializer.is_valid(raise_exception=True)
        data = serializer.validated_data

        po = services.create_purchase_order(
            company_id,
            supplier_id=data["supplier_id"],
            lines=data["lines"],
            status=data.get("status"),
            ship_to_location_id=data.get("ship_to_location_id"),
            order_date=data.get("order_date"),
            expected_date=data.get("expected_date"),
            notes=data.get("notes", ""),
            actor=request.user,
        )
        payload = self.get_serializer(self.queryset.all().get(pk=po.pk)).data
        create_audit_log_from_request(request, action="purchase_order.create", entity="purchase_order", entity_id=po.pk, after_snapshot=payload)
        return Response(payload, status=status.HTTP_201_CREATED)

    @action(detail=True, methods=["patch"], url_path=r"lines/(?P<line_id>[^/.]+)")
    def update_line(self, request, pk=None, line_id=None):
        po = self.get_object()
        serializer = PurchaseOrderLineUpdateSerializer(data=request.data, partial=True)
        serializer.is_valid(raise_exception=True)
        before_status = po.status

        line = services.update_purchase_order_line(po.company_id, po.pk, line_id, dict(serializer.validated_data))
        po.refresh_from_db()
        create_audit_log_from_request(
            request,
            action="purchase_order.line.update",
            entity="purchase_order",
            entity_id=po.pk,
            before_snapshot={"status": before_status},
            after_snapshot={"status": po.status, "line": PurchaseOrderLineSerializer(line).data},
            company_id=po.company_id,
        )
        return Response(self.get_serializer(self.queryset.all().get(pk=po.pk)).data)

    @action(detail=False, methods=["get"], url_path="next-number")
    def next_number(self, request):
        company_id = require_company_id(request.user)
        return Response({"po_number": services.preview_po_number(company_id)})


class ReceivingViewSet(
    mixins.ListModelMixin,
    mixins.RetrieveModelMixin,
    viewsets.GenericViewSet,
):
    queryset = Receiving.objects.select_related("supplier", "purchase_order").prefetch_related("items__part")
    serializer_class = ReceivingSerializer
    pagination_class = StandardResultsSetPagination
    permission_classes = [IsAuthenticated, RoleCapabilityPermission]
    permission_action_map = {
        "list": "procurement.view",
        "retrieve": "procurement.view",
        "create": "receiving.manage",
        "add_item": "receiving.manage",
        "item_detail": "receiving.manage",
        "complete": "receiving.manage",
        "scan": "receiving.manage",
    }

    def get_queryset(self):
        qs = scoped_queryset_for_user(super().get_queryset(), self.request.user).order_by("-created_at")
        status_filter = self.request.query_params.get("status")
        if status_filter:
            qs = qs.filter(status=status_filter)
        return qs

    def _detail(self, receiving, *, http_status=status.HTTP_200_OK):
        return Response(self.get_serializer(self.queryset.all().get(pk=receiving.pk)).data, status=http_status)

    def create(self, request, *args, **kwargs):
        company_id = require_company_id(request.user)
        serializer = ReceivingCreateSerializer(data=request.data)
        serializer.is_valid(raise_exception=True)
        receiving = receiving_engine.create_receiving(company_id, actor=request.user, **serializer.validated_data)
        create_audit_log_from_request(
            request,
            action="receiving.create",
            entity="receiving",
            entity_id=receiving.pk,
            after_snapshot={"po_number": receiving.po_number, "location_id": receiving.location_id},
        )
        return self._detail(receiving, http_status=status.HTTP_201_CREATED)

    @action(detail=True, methods=["post"], url_path="items")
    def add_item(self, request, pk=None):
        receiving = self.get_object()
        serializer = ReceivingItemInputSerializer(data=request.data)
        serializer.is_valid(raise_exception=True)
        item = receiving_engine.add_receiving_item(receiving.company_id, receiving.pk, **serializer.validated_data)
        return Response(ReceivingItemSerializer(item).data, status=status.HTTP_201_CREATED)

    @action(detail=True, methods=["patch", "delete"], url_path=r"items/(?P<item_id>[^/.]+)")
    def item_detail(self, request, pk=None, item_id=None):
        receiving = self.get_object()
        if request.method == "DELETE":
            receiving_engine.remove_receiving_item(receiving.company_id, receiving.pk, item_id)
            return Response(status=status.HTTP_204_NO_CONTENT)

        serializer = ReceivingItemUpdateSerializer(data=request.data, partial=True)
        serializer.is_valid(raise_exception=True)
        item = receiving_engine.update_receiving_item(receiving.company_id, receiving.pk, item_id, dict(serializer.validated_data))
        return Response(ReceivingItemSerializer(item).data)

    @action(detail=True, methods=["post"], url_path="complete")
    def complete(self, request, pk=None):
        receiving = self.get_object()
        receiving = receiving_engine.complete_receiving(receiving.company_id, receiving.pk, actor=request.user)
        create_audit_log_from_request(
            request,
            action="receiving.complete",
            entity="receiving",
            entity_id=receiving.pk,
            after_snapshot={"status": receiving.status, "po_number": receiving.po_number},
            company_id=receiving.company_id,
        )
        return self._detail(receiving)

    @action(detail=False, methods=["post"], url_path="scan")
    def scan(self, request):
        company_id = require_company_id(request.user)
        serializer = ScanSerializer(data=request.data)
        serializer.is_valid(raise_exception=True)
        decoded = decode_scan(serializer.validated_data["raw"])
        return Response({"decoded": decoded.as_dict(), "matches": receiving_engine.match_scanned_data(company_id, decoded)})
