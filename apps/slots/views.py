"""API views for the slots domain."""

from __future__ import annotations

import logging

from django.http import HttpResponse  # type: ignore
from rest_framework import permissions, status, viewsets  # type: ignore
from rest_framework.decorators import action  # type: ignore
from rest_framework.response import Response  # type: ignore

from apps.payments import gateway
from apps.users.identity import caller_from_request
from shared.domain.exceptions import Conflict, Forbidden
from shared.infrastructure.exception_handler import domain_error_response

from .application.command_handlers import (
    CreateSlotCommand,
    CreateSlotHandler,
    DeleteSlotCommand,
    DeleteSlotHandler,
)
from .application.engine import ReservationEngine, reservation_timeout
from .domain.entities import SlotState
from .filters import SlotFilterSet
from .models import Slot as SlotModel
from .permissions import IsAdminIdentity
from .receipts import receipt_filename, receipt_reference, render_receipt
from .serializers import (
    AdminSlotSerializer,
    ReservationSerializer,
    SlotCreateSerializer,
    SlotSerializer,
)

logger = logging.getLogger(__name__)


class SlotViewSet(viewsets.GenericViewSet):
    """Slots: public calendar, admin inventory and reservations."""

    queryset = SlotModel.objects.all()
    filterset_class = SlotFilterSet
    serializer_class = SlotSerializer
    pagination_class = None

    def get_permissions(self):  # type: ignore
        if self.action in ("list", "retrieve"):
            return [permissions.AllowAny()]
        if self.action in ("create", "destroy", "confirmed"):
            return [permissions.IsAuthenticated(), IsAdminIdentity()]
        return [permissions.IsAuthenticated()]

    def get_serializer_class(self):  # type: ignore
        if self.action == "create":
            return SlotCreateSerializer
        return SlotSerializer

    @property
    def engine(self) -> ReservationEngine:
        if not hasattr(self, "_engine"):
            self._engine = ReservationEngine()
        return self._engine

    def _caller(self):
        return caller_from_request(self.request)

    def _slot_data(self, slot, status_code=status.HTTP_200_OK) -> Response:
        caller = self._caller()
        serializer_class = AdminSlotSerializer if caller and caller.is_admin else SlotSerializer
        return Response(serializer_class(slot.redacted_for(caller)).data, status=status_code)

    def _slot_list(self, slots) -> Response:
        caller = self._caller()
        serializer_class = AdminSlotSerializer if caller and caller.is_admin else SlotSerializer
        return Response(serializer_class([slot.redacted_for(caller) for slot in slots], many=True).data)

    def _checkout(self, slot, caller):
        expires_at = (slot.reserved_at or self.engine.clock()) + reservation_timeout()
        return gateway.create_checkout(slot, caller, expires_at)

    # ===== Public calendar =====

    def list(self, request, *args, **kwargs):  # type: ignore
        queryset = self.filter_queryset(self.get_queryset())
        return self._slot_list(self.engine.store.list_all(queryset))

    def retrieve(self, request, pk=None, *args, **kwargs):  # type: ignore
        return self._slot_data(self.engine.fetch(pk, self._caller()))

    # ===== Admin inventory =====

    def create(self, request, *args, **kwargs):  # type: ignore
        serializer = self.get_serializer(data=request.data)
        serializer.is_valid(raise_exception=True)
        slot = CreateSlotHandler(self.engine.store).handle(CreateSlotCommand(**serializer.validated_data))
        return self._slot_data(slot, status.HTTP_201_CREATED)

    def destroy(self, request, pk=None, *args, **kwargs):  # type: ignore
        DeleteSlotHandler(self.engine.store).handle(DeleteSlotCommand(slot_id=pk))
        return Response(status=status.HTTP_204_NO_CONTENT)

    @action(detail=False, methods=["get"])
    def confirmed(self, request):  # type: ignore
        return self._slot_list(self.engine.store.list_confirmed())

    # ===== Reservations =====

    @action(detail=False, methods=["get"])
    def mine(self, request):  # type: ignore
        caller = self._caller()
        return self._slot_list(self.engine.store.list_by_reserving_party(caller.id))

    @action(detail=True, methods=["post"])
    def reserve(self, request, pk=None):  # type: ignore
        caller = self._caller()
        result = self.engine.reserve(pk, caller)
        if not result.ok:
            return domain_error_response(result.error)

        slot = result.slot
        expires_at = slot.reserved_at + reservation_timeout()
        checkout_url = None
        try:
            checkout_url = self._checkout(slot, caller).checkout_url
        except gateway.PaymentGatewayError as e:
            # Slot stays pending; the client can retry via the checkout action
            logger.warning(f"Checkout could not be started for slot {slot.id}: {e}")

        reservation = {
            "slot": slot,
            "external_price_ref": slot.external_price_ref,
            "checkout_url": checkout_url,
            "expires_at": expires_at,
        }
        return Response(ReservationSerializer(reservation).data, status=status.HTTP_200_OK)

    @action(detail=True, methods=["post"])
    def checkout(self, request, pk=None):  # type: ignore
        caller = self._caller()
        slot = self.engine.store.get(pk)
        if not slot.is_owned_by(caller):
            raise Forbidden("Not your booking.", slot_id=str(slot.id))
        if slot.state is not SlotState.PENDING:
            raise Conflict("Checkout is only possible while the booking awaits payment.", state=slot.state.value)

        try:
            session = self._checkout(slot, caller)
        except gateway.PaymentGatewayError as e:
            return Response({"detail": str(e), "code": "payment_gateway_error"}, status=status.HTTP_502_BAD_GATEWAY)
        return Response({"checkout_url": session.checkout_url, "expires_at": session.expires_at})

    @action(detail=True, methods=["post"])
    def cancel(self, request, pk=None):  # type: ignore
        result = self.engine.cancel(pk, self._caller())
        if not result.ok:
            return domain_error_response(result.error)
        return self._slot_data(result.slot)

    @action(detail=True, methods=["get"])
    def receipt(self, request, pk=None):  # type: ignore
        caller = self._caller()
        slot = self.engine.store.get(pk)
        if not slot.is_owned_by(caller):
            raise Forbidden("Not your booking.", slot_id=str(slot.id))
        if slot.state is not SlotState.CONFIRMED:
            raise Conflict("Receipts are only available for confirmed bookings.", state=slot.state.value)

        response = HttpResponse(render_receipt(slot, receipt_reference(slot.id)), content_type="application/pdf")
        response["Content-Disposition"] = f'attachment; filename="{receipt_filename(slot)}"'
        return response
