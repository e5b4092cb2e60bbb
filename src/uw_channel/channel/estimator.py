"""Per-link cache of channel response estimates.

Estimates are stored per (transmitter, receiver) location pair. Locations are
compared with a spatial tolerance: two positions closer than `space_sampling`
meters address the same cache slot. This quantizes space on purpose, so that
continuously moving nodes do not grow the cache without bound.

Each slot is created on the first estimate and refreshed on every later one,
either by an exponential moving average or by a hard replace. Slots are only
dropped by `reset()`.
"""

from __future__ import annotations

import logging
import threading

from uw_channel.channel.coordinates import Coordinate
from uw_channel.channel.exceptions import (
  DegenerateParametersError,
  InvalidResponseError,
)
from uw_channel.channel.ordered import OrderedTable
from uw_channel.channel.response import ChannelResponse

logger = logging.getLogger(__name__)


def _lexicographic(location: Coordinate) -> tuple[float, float, float]:
  return (location.latitude, location.longitude, location.depth)


class SpatialKey:
  """A location compared under a spatial tolerance.

  With `tolerance > 0`, keys closer than the tolerance (Cartesian distance) are
  equal and other keys are ordered by latitude, longitude, depth. With
  `tolerance <= 0`, ordering and equality are exact.
  """

  __slots__ = ("location", "tolerance")

  def __init__(self, location: Coordinate, tolerance: float = 0.0) -> None:
    self.location = location
    self.tolerance = tolerance

  def _close(self, other: SpatialKey) -> bool:
    tolerance = max(self.tolerance, other.tolerance)
    if tolerance <= 0:
      return False
    return self.location.cartesian_distance(other.location) <= tolerance

  def __lt__(self, other: SpatialKey) -> bool:
    if self._close(other):
      return False
    return _lexicographic(self.location) < _lexicographic(other.location)

  def __eq__(self, other: object) -> bool:
    if not isinstance(other, SpatialKey):
      return NotImplemented
    if self._close(other):
      return True
    return _lexicographic(self.location) == _lexicographic(other.location)

  __hash__ = None  # type: ignore[assignment]

  def __repr__(self) -> str:
    return f"SpatialKey({self.location}, tolerance={self.tolerance})"


class EstimationCache:
  """Thread-safe store of channel estimates keyed by location pairs.

  All reads and writes go through one re-entrant lock, so updates of a slot are
  serialized and readers never observe a half-averaged response.

  Attributes:
    avg_coeff: Weight of the stored estimate in the moving average. Values in
      (0, 1] average, values <= 0 replace.
    space_sampling: Spatial tolerance in meters.
  """

  def __init__(self, avg_coeff: float = 0.0, space_sampling: float = 0.0) -> None:
    if avg_coeff > 1.0:
      msg = f"avg_coeff must be <= 1, got {avg_coeff}"
      raise DegenerateParametersError(msg)
    self.avg_coeff = avg_coeff
    self.space_sampling = space_sampling
    self._lock = threading.RLock()
    self._table: OrderedTable[SpatialKey, OrderedTable[SpatialKey, ChannelResponse]]
    self._table = OrderedTable()

  def _key(self, location: Coordinate) -> SpatialKey:
    return SpatialKey(location, self.space_sampling)

  def get(self, tx: Coordinate, rx: Coordinate) -> ChannelResponse | None:
    """Return a copy of the estimate for (tx, rx), or None on a miss."""
    with self._lock:
      rx_table = self._table.get(self._key(tx))
      if rx_table is None:
        logger.debug(f"No estimate for tx {tx}")
        return None
      stored = rx_table.get(self._key(rx))
      if stored is None:
        logger.debug(f"No estimate for tx {tx} and rx {rx}")
        return None
      logger.debug(f"Estimate found for tx {tx}, rx {rx}: {stored.summary()}")
      return stored.copy()

  def update(self, tx: Coordinate, rx: Coordinate, candidate: ChannelResponse) -> None:
    """Merge a fresh estimate into the (tx, rx) slot.

    Args:
      tx: Transmitter location.
      rx: Receiver location.
      candidate: Freshly computed response; the cache stores its own copy.

    Raises:
      InvalidResponseError: If the candidate is empty or not valid.
    """
    if not candidate.is_valid():
      msg = f"Refusing to cache a not-valid estimate for tx {tx}, rx {rx}"
      raise InvalidResponseError(msg)

    with self._lock:
      rx_table = self._table.setdefault(self._key(tx), OrderedTable)
      rx_key = self._key(rx)
      stored = rx_table.get(rx_key)

      if stored is None:
        logger.debug(
          f"Inserting estimate for tx {tx}, rx {rx}: {candidate.summary()}"
        )
        rx_table.set(rx_key, candidate.copy())
        return

      if self.avg_coeff > 0:
        updated = stored * self.avg_coeff + candidate * (1.0 - self.avg_coeff)
      else:
        updated = candidate.copy()
      logger.debug(
        f"Updating estimate for tx {tx}, rx {rx}: {stored.summary()} -> "
        f"{updated.summary()}"
      )
      rx_table.set(rx_key, updated)

  def contains(self, tx: Coordinate, rx: Coordinate) -> bool:
    with self._lock:
      rx_table = self._table.get(self._key(tx))
      return rx_table is not None and rx_table.get(self._key(rx)) is not None

  def reset(self) -> None:
    """Drop every estimate."""
    with self._lock:
      logger.debug(f"Resetting estimator with {len(self)} estimates")
      self._table.clear()

  def __len__(self) -> int:
    with self._lock:
      return sum(len(rx_table) for rx_table in self._table.values())
