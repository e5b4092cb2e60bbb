"""Channel response pipeline for underwater acoustic links."""

from uw_channel.channel.attenuation import (
  AttenuationSample,
  practical_attenuation_db,
  thorp_absorption,
)
from uw_channel.channel.combiner import CombinerParams, combine
from uw_channel.channel.coordinates import Coordinate, CoordZ
from uw_channel.channel.estimator import EstimationCache, SpatialKey
from uw_channel.channel.exceptions import (
  ChannelError,
  DegenerateParametersError,
  InvalidResponseError,
)
from uw_channel.channel.link import (
  ChannelLink,
  ResponseProvider,
  TapArrival,
  Transmission,
  apply_response,
)
from uw_channel.channel.messages import (
  ChannelEstimationMessage,
  DistanceQuery,
  EstimatorPlugin,
)
from uw_channel.channel.precision import PrecisionValue
from uw_channel.channel.response import ChannelResponse
from uw_channel.channel.underwater import Underwater, center_frequency

__all__ = [
  # Values and responses
  "AttenuationSample",
  "ChannelResponse",
  "PrecisionValue",
  # Reduction and estimation
  "CombinerParams",
  "EstimationCache",
  "SpatialKey",
  "combine",
  # Link processing
  "ChannelLink",
  "ResponseProvider",
  "TapArrival",
  "Transmission",
  "apply_response",
  # Messaging
  "ChannelEstimationMessage",
  "DistanceQuery",
  "EstimatorPlugin",
  # Environment
  "CoordZ",
  "Coordinate",
  "Underwater",
  "center_frequency",
  "practical_attenuation_db",
  "thorp_absorption",
  # Errors
  "ChannelError",
  "DegenerateParametersError",
  "InvalidResponseError",
]
