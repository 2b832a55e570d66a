from django.urls import path, include
from rest_framework.routers import DefaultRouter
from . import views

app_name = 'deals'

# Router for ViewSets
router = DefaultRouter()
router.register(r'', views.DealViewSet, basename='deal')

urlpatterns = [
    # Deal ViewSet routes
    # GET    /api/deals/                     - List deals
    # POST   /api/deals/                     - Publish deal (supplier)
    # GET    /api/deals/{id}/                - Deal details with tiers
    # PATCH  /api/deals/{id}/                - Update deal or tiers (supplier)

    # Custom deal actions
    # POST   /api/deals/{id}/join/           - Join at the next position
    # GET    /api/deals/{id}/prices/         - Price table snapshot
    # GET    /api/deals/{id}/participants/   - Participants by position
    # GET    /api/deals/{id}/quote/          - Current price for the user
    # GET    /api/deals/{id}/simulate/       - Tier price simulation (supplier)
    # POST   /api/deals/{id}/close/          - Close and charge (staff)

    # Include router URLs
    path('', include(router.urls)),
]
