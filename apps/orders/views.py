from rest_framework import viewsets, status
from rest_framework.decorators import action
from rest_framework.response import Response
from rest_framework.permissions import IsAuthenticated

from apps.accounts.permissions import IsOrderStaff
from .serializers import (
    CancelOrderSerializer,
    OrderListQuerySerializer,
    OrderSerializer,
    PaymentStatusSerializer,
    PlaceOrderSerializer,
    UpdateStatusSerializer,
)
from .services import OrderQueryService, OrderService


class OrderViewSet(viewsets.ViewSet):
    """
    Thin HTTP layer over OrderService / OrderQueryService.
    Business errors propagate to apps.utils.exceptions.custom_exception_handler.
    """
    permission_classes = [IsAuthenticated]

    def get_permissions(self):
        if self.action in ("update_status", "payment_status"):
            return [IsAuthenticated(), IsOrderStaff()]
        return super().get_permissions()

    def get_order_service(self):
        return OrderService()

    def list(self, request):
        query = OrderListQuerySerializer(data=request.query_params)
        query.is_valid(raise_exception=True)

        orders, total = OrderQueryService.list_orders(requester=request.user, **query.validated_data)
        page = query.validated_data["page"]
        page_size = query.validated_data["page_size"]
        return Response({
            "count": total,
            "page": page,
            "page_size": page_size,
            "has_next": page * page_size < total,
            "results": OrderSerializer(orders, many=True).data,
        })

    def retrieve(self, request, pk=None):
        order = OrderQueryService.get_order(pk, request.user)
        return Response(OrderSerializer(order).data)

    def create(self, request):
        """
        Checkout. Body: items[{product_id, quantity}], shipping_address, payment_method, notes.
        Without `items` the user's cart is checked out.
        """
        serializer = PlaceOrderSerializer(data=request.data)
        serializer.is_valid(raise_exception=True)
        d = serializer.validated_data

        service = self.get_order_service()
        if "items" in d:
            order = service.place_order(
                user=request.user,
                items=d["items"],
                shipping_address=d["shipping_address"],
                payment_method=d["payment_method"],
                notes=d["notes"],
            )
        else:
            order = service.place_order_from_cart(
                user=request.user,
                shipping_address=d["shipping_address"],
                payment_method=d["payment_method"],
                notes=d["notes"],
            )
        return Response(OrderSerializer(order).data, status=status.HTTP_201_CREATED)

    @action(detail=True, methods=['post'])
    def cancel(self, request, pk=None):
        serializer = CancelOrderSerializer(data=request.data)
        serializer.is_valid(raise_exception=True)

        order = self.get_order_service().cancel_order(
            pk, reason=serializer.validated_data["reason"], requester=request.user
        )
        return Response(OrderSerializer(order).data)

    @action(detail=True, methods=['put', 'post'], url_path='status')
    def update_status(self, request, pk=None):
        serializer = UpdateStatusSerializer(data=request.data)
        serializer.is_valid(raise_exception=True)
        d = serializer.validated_data

        order = self.get_order_service().update_status(
            pk, d["status"], tracking_number=d["tracking_number"], requester=request.user
        )
        return Response(OrderSerializer(order).data)

    @action(detail=True, methods=['post'], url_path='payment-status')
    def payment_status(self, request, pk=None):
        serializer = PaymentStatusSerializer(data=request.data)
        serializer.is_valid(raise_exception=True)

        order = self.get_order_service().update_payment_status(
            pk, serializer.validated_data["payment_status"], actor=request.user
        )
        return Response(OrderSerializer(order).data)
