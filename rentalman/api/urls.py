"""
Rentalman API URLs.

Include this in your project's urlpatterns:

    path('api/rentalman/', include('rentalman.api.urls')),
"""

from rest_framework.routers import DefaultRouter

from .views import AlertViewSet, EquipmentItemViewSet, WorkOrderViewSet

router = DefaultRouter()
router.register("items", EquipmentItemViewSet)
router.register("work-orders", WorkOrderViewSet)
router.register("alerts", AlertViewSet)

urlpatterns = router.urls
