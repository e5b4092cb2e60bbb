"""Node-facing access to the estimation cache.

Nodes talk to the channel through messages addressed by node id; the plugin
resolves ids to current positions and answers from the estimation cache.

Two message kinds are handled:

  - `ChannelEstimationMessage`: a query gets the cached estimate back in its
    response; an update carries a response that is merged into the cache.
    Answered queries stay queries, so handling one again never writes.
  - `DistanceQuery`: answered with the Cartesian distance between two nodes.
"""

from __future__ import annotations

import logging
import threading
from collections.abc import Callable
from typing import Any

from pydantic import BaseModel, model_validator

from uw_channel.channel.coordinates import Coordinate
from uw_channel.channel.estimator import EstimationCache
from uw_channel.channel.response import ChannelResponse

logger = logging.getLogger(__name__)

PositionFn = Callable[[], Coordinate]


class ChannelEstimationMessage(BaseModel):
  """Query or update of the estimate between two nodes.

  Attributes:
    tx: Transmitter node id.
    rx: Receiver node id.
    response: Estimate to store for an update, or the answer to a query.
    query: Whether the message asks for the estimate. Defaults to True when no
      response is given.
  """

  tx: int
  rx: int
  response: ChannelResponse | None = None
  query: bool

  model_config = {"arbitrary_types_allowed": True}

  @model_validator(mode="before")
  @classmethod
  def _default_query(cls, data: Any) -> Any:
    if isinstance(data, dict) and "query" not in data:
      data = {**data, "query": data.get("response") is None}
    return data

  @model_validator(mode="after")
  def _update_has_response(self) -> ChannelEstimationMessage:
    if not self.query and self.response is None:
      msg = "An estimate update needs a response"
      raise ValueError(msg)
    return self

  @property
  def is_query(self) -> bool:
    return self.query


class DistanceQuery(BaseModel):
  """Distance between two nodes; `distance` is filled in by the plugin."""

  first: int
  second: int
  distance: float | None = None


Message = ChannelEstimationMessage | DistanceQuery


class EstimatorPlugin:
  """Dispatches node messages to the estimation cache.

  Positions are read through callables so that moving nodes are always
  resolved to where they are now.
  """

  def __init__(self, estimator: EstimationCache | None = None) -> None:
    self.estimator = estimator
    self._nodes: dict[int, PositionFn] = {}
    self._lock = threading.Lock()

  def set_estimator(self, estimator: EstimationCache) -> None:
    self.estimator = estimator

  def add_node(self, node_id: int, position_fn: PositionFn) -> None:
    """Register a node; an existing id is rebound."""
    with self._lock:
      if node_id in self._nodes:
        logger.debug(f"Rebinding position of node {node_id}")
      self._nodes[node_id] = position_fn

  def remove_node(self, node_id: int) -> None:
    with self._lock:
      self._nodes.pop(node_id, None)

  def find_node(self, node_id: int) -> Coordinate | None:
    """Current position of a node, or None if it is not registered."""
    with self._lock:
      position_fn = self._nodes.get(node_id)
    if position_fn is None:
      return None
    return position_fn()

  def handle(self, message: Message) -> Message:
    """Process a message and return it, with the answer filled in.

    Raises:
      RuntimeError: If an estimation message arrives before an estimator is
        set.
      TypeError: On an unsupported message type.
    """
    if isinstance(message, DistanceQuery):
      return self._handle_distance(message)
    if isinstance(message, ChannelEstimationMessage):
      return self._handle_estimation(message)
    msg = f"Unsupported message type {type(message).__name__}"
    raise TypeError(msg)

  def _handle_distance(self, message: DistanceQuery) -> DistanceQuery:
    first = self.find_node(message.first)
    second = self.find_node(message.second)
    if first is None or second is None:
      logger.warning(
        f"Distance query between unknown nodes {message.first} and {message.second}"
      )
      return message.model_copy(update={"distance": None})
    return message.model_copy(update={"distance": first.cartesian_distance(second)})

  def _handle_estimation(
    self, message: ChannelEstimationMessage
  ) -> ChannelEstimationMessage:
    if self.estimator is None:
      msg = "No estimator set on the plugin"
      raise RuntimeError(msg)

    tx = self.find_node(message.tx)
    rx = self.find_node(message.rx)
    if tx is None or rx is None:
      logger.warning(
        f"Estimation message for unknown nodes {message.tx} -> {message.rx}"
      )
      return message

    if message.is_query:
      estimate = self.estimator.get(tx, rx)
      logger.debug(
        f"Estimate query {message.tx} -> {message.rx}: found={estimate is not None}"
      )
      return message.model_copy(update={"response": estimate})

    if not message.response.is_valid():
      logger.warning(
        f"Dropping not-valid estimate update {message.tx} -> {message.rx}"
      )
      return message

    self.estimator.update(tx, rx, message.response)
    logger.debug(
      f"Estimate update {message.tx} -> {message.rx}: {message.response.summary()}"
    )
    return message
