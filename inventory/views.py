from rest_framework import mixins, status, viewsets
from rest_framework.decorators import action
from rest_framework.exceptions import PermissionDenied
from rest_framework.permissions import IsAuthenticated
from rest_framework.response import Response
from rest_framework.views import APIView

from common.audit import create_audit_log_from_request
from common.pagination import StandardResultsSetPagination
from common.permissions import RoleCapabilityPermission, log_denied, user_has_capability
from core.views import require_company_id, scoped_queryset_for_user
from inventory import allocation, services
from inventory.loadouts import blueprint_requirements, remove_blueprint_item
from inventory.models import ContainerBlueprint, ContainerLoadout, Inventory, Location, Part, TransferOrder
from inventory.scanning import decode_scan
from inventory.serializers import (
    AssignLoadoutSerializer,
    AutoAssignSerializer,
    ContainerBlueprintSerializer,
    ContainerLoadoutSerializer,
    InventorySerializer,
    LocationSerializer,
    ManualAssignSerializer,
    PartSerializer,
    ScanSerializer,
    TransferOrderCreateSerializer,
    TransferOrderItemInputSerializer,
    TransferOrderItemSerializer,
    TransferOrderSerializer,
    TransferOrderUpdateSerializer,
    TransitionSerializer,
)

# Targets that need a supervisor on top of transfer.manage.
APPROVAL_TARGETS = {TransferOrder.Status.APPROVED, TransferOrder.Status.COMPLETED}


class LocationViewSet(viewsets.ReadOnlyModelViewSet):
    queryset = Location.objects.all().order_by("code")
    serializer_class = LocationSerializer
    permission_classes = [IsAuthenticated, RoleCapabilityPermission]
    permission_action_map = {"list": "inventory.view", "retrieve": "inventory.view"}

    def get_queryset(self):
        return scoped_queryset_for_user(super().get_queryset(), self.request.user)


class PartViewSet(viewsets.ReadOnlyModelViewSet):
    queryset = Part.objects.all().order_by("sku")
    serializer_class = PartSerializer
    permission_classes = [IsAuthenticated, RoleCapabilityPermission]
    permission_action_map = {"list": "inventory.view", "retrieve": "inventory.view"}

    def get_queryset(self):
        return scoped_queryset_for_user(super().get_queryset(), self.request.user)


class InventoryViewSet(viewsets.ReadOnlyModelViewSet):
    queryset = Inventory.objects.select_related("part", "lot", "serial").order_by("created_at")
    serializer_class = InventorySerializer
    pagination_class = StandardResultsSetPagination
    permission_classes = [IsAuthenticated, RoleCapabilityPermission]
    permission_action_map = {"list": "inventory.view", "retrieve": "inventory.view"}

    def get_queryset(self):
        qs = scoped_queryset_for_user(super().get_queryset(), self.request.user)
        location_id = self.request.query_params.get("location_id")
        part_id = self.request.query_params.get("part_id")
        if location_id:
            qs = qs.filter(location_id=location_id)
        if part_id:
            qs = qs.filter(part_id=part_id)
        if self.request.query_params.get("available") in ("1", "true"):
            qs = qs.filter(quantity_available__gt=0)
        return qs


class BlueprintViewSet(viewsets.ReadOnlyModelViewSet):
    queryset = ContainerBlueprint.objects.prefetch_related("items__product").order_by("name")
    serializer_class = ContainerBlueprintSerializer
    permission_classes = [IsAuthenticated, RoleCapabilityPermission]
    permission_action_map = {
        "list": "inventory.view",
        "retrieve": "inventory.view",
        "requirements": "inventory.view",
        "remove_item": "blueprint.manage",
    }

    def get_queryset(self):
        return scoped_queryset_for_user(super().get_queryset(), self.request.user)

    @action(detail=True, methods=["get"], url_path="requirements")
    def requirements(self, request, pk=None):
        blueprint = self.get_object()
        rows = [
            {
                "blueprint_item_id": str(req.blueprint_item.pk),
                "product_id": str(req.product.pk),
                "product_name": req.product.name,
                "part_id": str(req.part.pk) if req.part is not None else None,
                "required_quantity": req.required_quantity,
                "unit_of_measure": req.unit_of_measure,
            }
            for req in blueprint_requirements(blueprint.company_id, blueprint.pk)
        ]
        return Response(rows)

    @action(detail=True, methods=["delete"], url_path=r"items/(?P<item_id>[^/.]+)")
    def remove_item(self, request, pk=None, item_id=None):
        blueprint = self.get_object()
        remove_blueprint_item(blueprint.company_id, blueprint.pk, item_id)
        create_audit_log_from_request(
            request,
            action="blueprint.item.delete",
            entity="container_blueprint",
            entity_id=blueprint.pk,
            before_snapshot={"blueprint_item_id": item_id},
            company_id=blueprint.company_id,
        )
        return Response(status=status.HTTP_204_NO_CONTENT)


class LoadoutViewSet(viewsets.ReadOnlyModelViewSet):
    queryset = ContainerLoadout.objects.select_related("blueprint").prefetch_related("lots").order_by("-created_at")
    serializer_class = ContainerLoadoutSerializer
    permission_classes = [IsAuthenticated, RoleCapabilityPermission]
    permission_action_map = {"list": "inventory.view", "retrieve": "inventory.view"}

    def get_queryset(self):
        qs = scoped_queryset_for_user(super().get_queryset(), self.request.user)
        blueprint_id = self.request.query_params.get("blueprint_id")
        if blueprint_id:
            qs = qs.filter(blueprint_id=blueprint_id)
        return qs


class TransferOrderViewSet(
    mixins.ListModelMixin,
    mixins.RetrieveModelMixin,
    viewsets.GenericViewSet,
):
    queryset = TransferOrder.objects.select_related("from_location", "to_location").prefetch_related("items__part", "items__lot")
    serializer_class = TransferOrderSerializer
    pagination_class = StandardResultsSetPagination
    permission_classes = [IsAuthenticated, RoleCapabilityPermission]
    permission_action_map = {
        "list": "inventory.view",
        "retrieve": "inventory.view",
        "next_number": "inventory.view",
        "create": "transfer.manage",
        "partial_update": "transfer.manage",
        "transition": "transfer.manage",
        "add_item": "transfer.manage",
        "remove_item": "transfer.manage",
        "auto_assign": "transfer.assign",
        "manual_assign": "transfer.assign",
        "assign_loadout": "transfer.assign",
        "destroy": "transfer.delete",
    }

    def get_queryset(self):
        qs = scoped_queryset_for_user(super().get_queryset(), self.request.user).order_by("-created_at")
        status_filter = self.request.query_params.get("status")
        if status_filter:
            qs = qs.filter(status=status_filter)
        return qs

    def _detail(self, order, *, http_status=status.HTTP_200_OK, **extra):
        order = self.queryset.all().get(pk=order.pk)
        data = TransferOrderSerializer(order, context={"request": self.request, "include_fulfillment": True}).data
        return Response({**data, **extra}, status=http_status)

    def _audit(self, action_name, order, *, before_snapshot=None, after_snapshot=None):
        create_audit_log_from_request(
            self.request,
            action=action_name,
            entity="transfer_order",
            entity_id=order.pk,
            before_snapshot=before_snapshot,
            after_snapshot=after_snapshot,
            company_id=order.company_id,
        )

    def _check_transition_capability(self, target):
        if target in APPROVAL_TARGETS and not user_has_capability(self.request.user, "transfer.approve"):
            log_denied(self.request, self, "transfer.approve", self.action)
            raise PermissionDenied("Supervisor approval is required for this transition.")

    def retrieve(self, request, *args, **kwargs):
        return self._detail(self.get_object())

    def create(self, request, *args, **kwargs):
        company_id = require_company_id(request.user)
        serializer = TransferOrderCreateSerializer(data=request.data)
        serializer.is_valid(raise_exception=True)
        data = serializer.validated_data

        order, shortages = services.create_transfer_order(
            company_id,
            from_location_id=data["from_location_id"],
            to_location_id=data["to_location_id"],
            blueprint_id=data.get("blueprint_id"),
            priority=data.get("priority"),
            transfer_reason=data.get("transfer_reason", ""),
            notes=data.get("notes", ""),
            requested_date=data.get("requested_date"),
            expected_arrival_date=data.get("expected_arrival_date"),
            items=data.get("items", []),
            actor=request.user,
        )
        shortage_rows = [shortage.as_dict() for shortage in shortages]
        self._audit("transfer_order.create", order, after_snapshot={"order_number": order.order_number, "shortages": shortage_rows})
        return self._detail(order, http_status=status.HTTP_201_CREATED, shortages=shortage_rows)

    def partial_update(self, request, *args, **kwargs):
        order = self.get_object()
        serializer = TransferOrderUpdateSerializer(data=request.data, partial=True)
        serializer.is_valid(raise_exception=True)
        patch = dict(serializer.validated_data)
        if "status" in patch and patch["status"] != order.status:
            self._check_transition_capability(patch["status"])

        before = {"status": order.status}
        order = services.update_transfer_order(order.company_id, order.pk, patch, actor=request.user)
        self._audit("transfer_order.update", order, before_snapshot=before, after_snapshot=serializer.data)
        return self._detail(order)

    def destroy(self, request, *args, **kwargs):
        order = self.get_object()
        order_number = services.delete_transfer_order(order.company_id, order.pk, actor=request.user)
        self._audit("transfer_order.delete", order, before_snapshot={"order_number": order_number, "status": order.status})
        return Response(status=status.HTTP_204_NO_CONTENT)

    @action(detail=True, methods=["post"], url_path="transition")
    def transition(self, request, pk=None):
        order = self.get_object()
        serializer = TransitionSerializer(data=request.data)
        serializer.is_valid(raise_exception=True)
        target = serializer.validated_data["status"]
        self._check_transition_capability(target)

        before = {"status": order.status}
        order = services.transition(order.company_id, order.pk, services.TransitionIntent(target, request.user))
        self._audit("transfer_order.transition", order, before_snapshot=before, after_snapshot={"status": order.status})
        return self._detail(order)

    @action(detail=True, methods=["post"], url_path="items")
    def add_item(self, request, pk=None):
        order = self.get_object()
        serializer = TransferOrderItemInputSerializer(data=request.data)
        serializer.is_valid(raise_exception=True)
        item = services.add_transfer_order_item(order.company_id, order.pk, actor=request.user, **serializer.validated_data)
        payload = TransferOrderItemSerializer(item).data
        self._audit("transfer_order.item.create", order, after_snapshot=payload)
        return Response(payload, status=status.HTTP_201_CREATED)

    @action(detail=True, methods=["delete"], url_path=r"items/(?P<item_id>[^/.]+)")
    def remove_item(self, request, pk=None, item_id=None):
        order = self.get_object()
        released = services.delete_transfer_order_item(order.company_id, order.pk, item_id, actor=request.user)
        self._audit("transfer_order.item.delete", order, before_snapshot={"item_id": item_id, "released": released})
        return Response(status=status.HTTP_204_NO_CONTENT)

    @action(detail=True, methods=["post"], url_path="auto-assign")
    def auto_assign(self, request, pk=None):
        order = self.get_object()
        serializer = AutoAssignSerializer(data=request.data)
        serializer.is_valid(raise_exception=True)
        shortages = services.auto_assign_order(
            order.company_id,
            order.pk,
            target_item_id=serializer.validated_data.get("blueprint_item_id"),
            actor=request.user,
        )
        shortage_rows = [shortage.as_dict() for shortage in shortages]
        self._audit("transfer_order.auto_assign", order, after_snapshot={"shortages": shortage_rows})
        return self._detail(order, shortages=shortage_rows)

    @action(detail=True, methods=["post"], url_path="manual-assign")
    def manual_assign(self, request, pk=None):
        order = self.get_object()
        serializer = ManualAssignSerializer(data=request.data)
        serializer.is_valid(raise_exception=True)
        data = serializer.validated_data
        applied = allocation.manual_assign(
            order.company_id,
            order.pk,
            data["blueprint_item_id"],
            data["inventory_id"],
            data["quantity"],
            note=data.get("notes"),
            actor=request.user,
        )
        self._audit(
            "transfer_order.manual_assign",
            order,
            after_snapshot={
                "blueprint_item_id": data["blueprint_item_id"],
                "inventory_id": data["inventory_id"],
                "requested_quantity": data["quantity"],
                "assigned_quantity": applied,
            },
        )
        return self._detail(order, assigned_quantity=applied)

    @action(detail=True, methods=["post"], url_path="assign-loadout")
    def assign_loadout(self, request, pk=None):
        order = self.get_object()
        serializer = AssignLoadoutSerializer(data=request.data)
        serializer.is_valid(raise_exception=True)
        order = services.assign_loadout(order.company_id, order.pk, serializer.validated_data["loadout_id"])
        self._audit("transfer_order.assign_loadout", order, after_snapshot={"loadout_id": order.loadout_id})
        return self._detail(order)

    @action(detail=False, methods=["get"], url_path="next-number")
    def next_number(self, request):
        company_id = require_company_id(request.user)
        return Response({"order_number": services.preview_order_number(company_id)})


class ScanDecodeView(APIView):
    permission_classes = [IsAuthenticated, RoleCapabilityPermission]
    permission_action_map = {"post": "inventory.view"}

    def post(self, request):
        serializer = ScanSerializer(data=request.data)
        serializer.is_valid(raise_exception=True)
        return Response(decode_scan(serializer.validated_data["raw"]).as_dict())
