"""
Lazy reconstruction of layer buffers from their encoded PNG snapshots.

After undo/redo/paste/load a layer only carries ``encoded_image``. The
hydrator keeps one ``Future`` per pending layer id; ``pump()`` performs the
decodes (the equivalent of an image ``onload`` firing on the next event-loop
tick) and ``resolve()`` forces a single layer when an edit needs its pixels
right away. Every future resolves exactly once; a newer request for the same
layer id (another undo arrived first) cancels the older one.
"""
import logging
from concurrent.futures import Future
from dataclasses import dataclass
from typing import Callable, Optional

from .errors import HydrationError
from .layers import HydrationState, Layer
from .pixel_buffer import PixelBuffer

logger = logging.getLogger(__name__)


@dataclass
class _Ticket:
    layer: Layer
    future: Future


class Hydrator:
    def __init__(self, on_hydrated: Optional[Callable[[Layer], None]] = None):
        self._pending: dict[str, _Ticket] = {}
        self.on_hydrated = on_hydrated or (lambda layer: None)

    @property
    def pending_ids(self) -> list[str]:
        return list(self._pending)

    def is_pending(self, layer_id: str) -> bool:
        return layer_id in self._pending

    def request(self, layer: Layer) -> Future:
        """Schedule a decode for layer; an older request for the same id is superseded."""
        old = self._pending.pop(layer.id, None)
        if old is not None and not old.future.done():
            old.future.cancel()
        future: Future = Future()
        layer.hydration = HydrationState.PENDING
        self._pending[layer.id] = _Ticket(layer, future)
        return future

    def request_all(self, layers) -> list[Future]:
        return [self.request(layer) for layer in layers if layer.buffer is None]

    def cancel_all(self):
        for ticket in self._pending.values():
            if not ticket.future.done():
                ticket.future.cancel()
        self._pending.clear()

    def resolve(self, layer_id: str) -> bool:
        """Finish one pending decode now. Returns True if the layer has a buffer afterwards."""
        ticket = self._pending.pop(layer_id, None)
        if ticket is None:
            return False
        return self._complete(ticket)

    def pump(self) -> int:
        """Finish every pending decode; returns how many layers were installed."""
        done = 0
        while self._pending:
            layer_id = next(iter(self._pending))
            ticket = self._pending.pop(layer_id)
            if self._complete(ticket):
                done += 1
        return done

    def _complete(self, ticket: _Ticket) -> bool:
        layer = ticket.layer
        if layer.buffer is not None:
            ticket.future.set_result(layer.buffer)
            return True
        try:
            buffer = decode_layer(layer)
        except HydrationError as e:
            logger.error("%s", e)
            # keep the stack usable: an empty buffer, flagged as failed
            layer.buffer = PixelBuffer.blank(layer.width, layer.height)
            layer.hydration = HydrationState.FAILED
            ticket.future.set_exception(e)
            return False
        layer.buffer = buffer
        layer.hydration = HydrationState.READY
        ticket.future.set_result(buffer)
        logger.debug("Hydrated layer %s (%s)", layer.name, layer.id)
        self.on_hydrated(layer)
        return True


def decode_layer(layer: Layer) -> PixelBuffer:
    if not layer.encoded_image:
        raise HydrationError(layer.id, "no encoded image")
    try:
        return PixelBuffer.from_data_url(layer.encoded_image, (layer.width, layer.height))
    except ValueError as e:
        raise HydrationError(layer.id, str(e)) from e
