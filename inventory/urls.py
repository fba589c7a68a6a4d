from django.urls import path
from rest_framework.routers import DefaultRouter

from inventory.views import (
    BlueprintViewSet,
    InventoryViewSet,
    LoadoutViewSet,
    LocationViewSet,
    PartViewSet,
    ScanDecodeView,
    TransferOrderViewSet,
)

router = DefaultRouter()
router.register(r"locations", LocationViewSet, basename="location")
router.register(r"parts", PartViewSet, basename="part")
router.register(r"inventory", InventoryViewSet, basename="inventory")
router.register(r"blueprints", BlueprintViewSet, basename="blueprint")
router.register(r"loadouts", LoadoutViewSet, basename="loadout")
router.register(r"transfer-orders", TransferOrderViewSet, basename="transfer-order")

urlpatterns = router.urls + [
    path("scan/decode/", ScanDecodeView.as_view(), name="scan-decode"),
]
