from django.db.models import Q
from django.utils import timezone
from rest_framework import viewsets, status
from rest_framework.decorators import action
from rest_framework.permissions import AllowAny, IsAdminUser, IsAuthenticated
from rest_framework.response import Response
from rest_framework.pagination import PageNumberPagination
from drf_spectacular.utils import extend_schema, OpenApiParameter

from .models import Deal, DealStatus
from .pricing import simulate_pricing
from .serializers import (
    DealSerializer,
    DealListSerializer,
    DealCreateSerializer,
    DealUpdateSerializer,
    ParticipantSerializer,
    JoinResponseSerializer,
    PriceTableSerializer,
    QuoteSerializer,
    SimulationRowSerializer,
    ClosureResultSerializer,
    # Input serializers
    DealFilterSerializer,
    JoinDealSerializer,
    SimulateQuerySerializer,
)
from .permissions import IsSupplierOrReadOnly, CanManageDeal

from apps.deals.services import (
    create_deal,
    update_deal,
    join_deal,
    get_price_table,
    quote_price,
    close_deal,
    # Exceptions
    DealNotFoundError,
    DealClosedError,
    AlreadyParticipantError,
    InvalidQuantityError,
    ParticipantNotFoundError,
    InvalidTierTableError,
    InsufficientPermissionsError,
)


UUID_PATTERN = r'[0-9a-f]{8}-[0-9a-f]{4}-[0-9a-f]{4}-[0-9a-f]{4}-[0-9a-f]{12}'


class DealPagination(PageNumberPagination):
    """Custom pagination for deals."""
    page_size = 20
    page_size_query_param = 'page_size'
    max_page_size = 100


class DealViewSet(viewsets.ModelViewSet):
    """
    ViewSet for group-buying deals.

    All pricing and participation logic is handled by services.
    Views are thin HTTP handlers only.

    list: Browse deals (filterable by category, status, is_open)
    create: Publish a deal with its tier table (suppliers)
    retrieve: Get a deal with tiers and position pricing
    partial_update: Update fields or replace tiers (owning supplier)
    """

    queryset = Deal.objects.select_related('supplier').prefetch_related('tiers')
    serializer_class = DealSerializer
    permission_classes = [IsSupplierOrReadOnly]
    pagination_class = DealPagination
    lookup_value_regex = UUID_PATTERN
    http_method_names = ['get', 'post', 'patch', 'head', 'options']

    def get_permissions(self):
        """Set permissions based on action."""
        if self.action in ['list', 'retrieve', 'prices', 'participants']:
            return [AllowAny()]
        if self.action == 'create':
            return [IsAuthenticated(), IsSupplierOrReadOnly()]
        if self.action in ['partial_update', 'simulate']:
            return [IsAuthenticated(), CanManageDeal()]
        if self.action == 'close':
            return [IsAdminUser()]
        return [IsAuthenticated()]

    def get_queryset(self):
        """Filter deals using input serializer validation."""
        queryset = super().get_queryset()

        if self.action != 'list':
            return queryset

        filter_serializer = DealFilterSerializer(data=self.request.query_params.dict())
        filter_serializer.is_valid(raise_exception=True)
        params = filter_serializer.validated_data

        if 'category' in params:
            queryset = queryset.filter(category=params['category'])
        if 'status' in params:
            queryset = queryset.filter(status=params['status'])
        if 'supplier' in params:
            queryset = queryset.filter(supplier_id=params['supplier'])

        is_open = params.get('is_open')
        if is_open is not None:
            open_q = Q(status=DealStatus.ACTIVE, end_time__gt=timezone.now())
            queryset = queryset.filter(open_q) if is_open else queryset.exclude(open_q)

        return queryset

    def get_serializer_class(self):
        """Use different serializers for different actions."""
        if self.action == 'list':
            return DealListSerializer
        elif self.action == 'create':
            return DealCreateSerializer
        elif self.action == 'partial_update':
            return DealUpdateSerializer
        return DealSerializer

    @extend_schema(request=DealCreateSerializer, responses={201: DealSerializer})
    def create(self, request, *args, **kwargs):
        """Publish a deal with its tier table."""
        serializer = self.get_serializer(data=request.data)
        serializer.is_valid(raise_exception=True)

        fields = dict(serializer.validated_data)
        tiers = fields.pop('tiers')

        try:
            deal = create_deal(supplier=request.user, tiers=tiers, **fields)
        except InsufficientPermissionsError as e:
            return Response({'error': str(e)}, status=status.HTTP_403_FORBIDDEN)
        except InvalidTierTableError as e:
            return Response({'error': str(e)}, status=status.HTTP_400_BAD_REQUEST)

        output_serializer = DealSerializer(deal, context={'request': request})
        return Response(output_serializer.data, status=status.HTTP_201_CREATED)

    @extend_schema(request=DealUpdateSerializer, responses={200: DealSerializer})
    def partial_update(self, request, *args, **kwargs):
        """Update deal fields; a ``tiers`` list replaces the tier table."""
        deal = self.get_object()
        serializer = self.get_serializer(deal, data=request.data, partial=True)
        serializer.is_valid(raise_exception=True)

        fields = dict(serializer.validated_data)
        tiers = fields.pop('tiers', None)

        try:
            deal = update_deal(deal_id=deal.id, user=request.user, tiers=tiers, **fields)
        except DealNotFoundError as e:
            return Response({'error': str(e)}, status=status.HTTP_404_NOT_FOUND)
        except InsufficientPermissionsError as e:
            return Response({'error': str(e)}, status=status.HTTP_403_FORBIDDEN)
        except (DealClosedError, InvalidTierTableError) as e:
            return Response({'error': str(e)}, status=status.HTTP_400_BAD_REQUEST)

        output_serializer = DealSerializer(deal, context={'request': request})
        return Response(output_serializer.data)

    @extend_schema(request=JoinDealSerializer, responses={201: JoinResponseSerializer})
    @action(detail=True, methods=['post'])
    def join(self, request, pk=None):
        """
        Join a deal at the next position.

        POST /api/deals/{id}/join/
        Body: {"quantity": 1}
        """
        serializer = JoinDealSerializer(data=request.data)
        serializer.is_valid(raise_exception=True)

        try:
            participant, result = join_deal(
                deal_id=pk,
                user=request.user,
                quantity=serializer.validated_data['quantity'],
                name=serializer.validated_data.get('name', ''),
                email=serializer.validated_data.get('email', ''),
            )
        except DealNotFoundError as e:
            return Response({'error': str(e)}, status=status.HTTP_404_NOT_FOUND)
        except (DealClosedError, AlreadyParticipantError, InvalidQuantityError) as e:
            return Response({'error': str(e)}, status=status.HTTP_400_BAD_REQUEST)

        output_serializer = JoinResponseSerializer({
            'participant': participant,
            'current_price': result.new_price,
            'participant_count': participant.deal.participant_count,
            'tier_changed': result.tier_changed,
            'version': result.version,
        })
        return Response(output_serializer.data, status=status.HTTP_201_CREATED)

    @extend_schema(responses=PriceTableSerializer)
    @action(detail=True, methods=['get'])
    def prices(self, request, pk=None):
        """
        Current price table, the same snapshot the live feed sends.

        GET /api/deals/{id}/prices/
        """
        deal = self.get_object()
        return Response(PriceTableSerializer(get_price_table(deal)).data)

    @extend_schema(responses=ParticipantSerializer(many=True))
    @action(detail=True, methods=['get'])
    def participants(self, request, pk=None):
        """Participants ordered by join position."""
        deal = self.get_object()
        serializer = ParticipantSerializer(deal.participants.order_by('position'), many=True)
        return Response(serializer.data)

    @extend_schema(responses=QuoteSerializer)
    @action(detail=True, methods=['get'])
    def quote(self, request, pk=None):
        """
        Price the authenticated user would be charged now.

        GET /api/deals/{id}/quote/
        """
        try:
            quote = quote_price(deal_id=pk, user=request.user)
        except (DealNotFoundError, ParticipantNotFoundError) as e:
            return Response({'error': str(e)}, status=status.HTTP_404_NOT_FOUND)

        return Response(QuoteSerializer(quote).data)

    @extend_schema(
        parameters=[
            OpenApiParameter('units', int, description='Buyers to simulate'),
            OpenApiParameter('delta', str, description='Position spread in percent'),
            OpenApiParameter('tier', int, description='1-based tier, default current'),
        ],
        responses=SimulationRowSerializer(many=True),
    )
    @action(detail=True, methods=['get'])
    def simulate(self, request, pk=None):
        """
        Simulate position prices for a tier filled with ``units`` buyers.

        GET /api/deals/{id}/simulate/?units=10&delta=4
        """
        deal = self.get_object()

        query_serializer = SimulateQuerySerializer(data=request.query_params)
        query_serializer.is_valid(raise_exception=True)
        params = query_serializer.validated_data

        tiers = deal.get_tiers()
        if not tiers:
            return Response({'error': 'Deal has no tiers'}, status=status.HTTP_400_BAD_REQUEST)

        if 'tier' in params:
            if params['tier'] > len(tiers):
                return Response(
                    {'error': f"Deal has only {len(tiers)} tiers"},
                    status=status.HTTP_400_BAD_REQUEST
                )
            tier = tiers[params['tier'] - 1]
        else:
            tier = deal.get_current_tier()

        rows = simulate_pricing(
            deal.original_price,
            tier,
            params['units'],
            params.get('delta', deal.price_delta_percentage),
        )
        return Response(SimulationRowSerializer(rows, many=True).data)

    @extend_schema(request=None, responses=ClosureResultSerializer)
    @action(detail=True, methods=['post'])
    def close(self, request, pk=None):
        """
        Close a deal now and charge its participants (staff only).

        POST /api/deals/{id}/close/
        """
        try:
            result = close_deal(pk)
        except DealNotFoundError as e:
            return Response({'error': str(e)}, status=status.HTTP_404_NOT_FOUND)

        return Response(ClosureResultSerializer(result).data)
