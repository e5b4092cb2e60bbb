"""Node locations.

The package only needs Cartesian distances between locations. Anything exposing
`latitude`, `longitude`, `depth` and `cartesian_distance()` satisfies the
`Coordinate` protocol; `CoordZ` is a spherical-earth implementation good enough
for ranges of a few tens of kilometers.
"""

from typing import Protocol, runtime_checkable

import numpy as np
import numpy.typing as npt
from pydantic import BaseModel, Field

EARTH_RADIUS_M: float = 6371000.0


@runtime_checkable
class Coordinate(Protocol):
  """A 3-D location below the sea surface."""

  @property
  def latitude(self) -> float: ...

  @property
  def longitude(self) -> float: ...

  @property
  def depth(self) -> float: ...

  def cartesian_distance(self, other: "Coordinate") -> float: ...


class CoordZ(BaseModel):
  """Geographic location with depth.

  Attributes:
    latitude: Decimal degrees, north positive.
    longitude: Decimal degrees, east positive.
    depth: Meters below the surface (positive down).
  """

  latitude: float = Field(ge=-90.0, le=90.0)
  longitude: float = Field(ge=-180.0, le=180.0)
  depth: float = Field(default=0.0, ge=0.0)

  model_config = {"frozen": True}

  def cartesian(self) -> npt.NDArray[np.float64]:
    """Earth-centered Cartesian coordinates in meters."""
    lat = np.radians(self.latitude)
    lon = np.radians(self.longitude)
    radius = EARTH_RADIUS_M - self.depth
    return np.array(
      [
        radius * np.cos(lat) * np.cos(lon),
        radius * np.cos(lat) * np.sin(lon),
        radius * np.sin(lat),
      ]
    )

  def cartesian_distance(self, other: Coordinate) -> float:
    """Straight-line distance in meters."""
    if isinstance(other, CoordZ):
      other_xyz = other.cartesian()
    else:
      other_xyz = CoordZ(
        latitude=other.latitude, longitude=other.longitude, depth=other.depth
      ).cartesian()
    return float(np.linalg.norm(self.cartesian() - other_xyz))

  def sort_key(self) -> tuple[float, float, float]:
    return (self.latitude, self.longitude, self.depth)

  def __str__(self) -> str:
    return f"({self.latitude}, {self.longitude}, {self.depth}m)"
