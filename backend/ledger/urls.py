from rest_framework.routers import DefaultRouter

from .views import (
    CafeViewSet,
    CategoryViewSet,
    CustomerViewSet,
    OrderViewSet,
    PointsViewSet,
    ProductViewSet,
    VoucherViewSet,
)

router = DefaultRouter()
router.register(r"cafes", CafeViewSet, basename="cafes")
router.register(r"categories", CategoryViewSet, basename="categories")
router.register(r"products", ProductViewSet, basename="products")
router.register(r"orders", OrderViewSet, basename="orders")
router.register(r"customers", CustomerViewSet, basename="customers")
router.register(r"points", PointsViewSet, basename="points")
router.register(r"vouchers", VoucherViewSet, basename="vouchers")

urlpatterns = [
    *router.urls,
]
