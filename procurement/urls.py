from rest_framework.routers import DefaultRouter

from procurement.views import PurchaseOrderViewSet, ReceivingViewSet, SupplierViewSet

router = DefaultRouter()
router.register(r"suppliers", SupplierViewSet, basename="supplier")
router.register(r"purchase-orders", PurchaseOrderViewSet, basename="purchase-order")
router.register(r"receiving", ReceivingViewSet, basename="receiving")

urlpatterns = router.urls
