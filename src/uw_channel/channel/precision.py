"""Scalars compared under an explicit tolerance.

`PrecisionValue` is the key type of every delay-indexed structure in the
package. Two values compare equal when they are closer than the larger of their
tolerances; otherwise they are ordered by value.

Note:
  Tolerance-based equality is reflexive and symmetric but NOT transitive:
  with a tolerance of 0.05, 1.00 == 1.04 and 1.04 == 1.08 while 1.00 != 1.08.
  Ordered tables built on this type bucket keys through `<` only, so the
  first key inserted in a neighbourhood decides where later keys collapse.
"""

from __future__ import annotations

import math
import numbers

from uw_channel.channel.exceptions import DegenerateParametersError

DEFAULT_PRECISION: float = 1.0e-17


class PrecisionValue:
  """A float carrying the tolerance used when comparing it.

  Attributes:
    value: The scalar value.
    tolerance: Non-negative comparison tolerance.
  """

  __slots__ = ("_tolerance", "_value")

  def __init__(self, value: float = 0.0, tolerance: float = DEFAULT_PRECISION) -> None:
    if isinstance(value, PrecisionValue):
      value = value.value
    if tolerance < 0 or math.isnan(tolerance):
      msg = f"Tolerance must be non-negative, got {tolerance}"
      raise DegenerateParametersError(msg)
    self._value = float(value)
    self._tolerance = float(tolerance)

  @property
  def value(self) -> float:
    return self._value

  @property
  def tolerance(self) -> float:
    return self._tolerance

  def with_tolerance(self, tolerance: float) -> PrecisionValue:
    """Return the same value under a different tolerance."""
    return PrecisionValue(self._value, tolerance)

  @staticmethod
  def _coerce(other: object) -> PrecisionValue | None:
    if isinstance(other, PrecisionValue):
      return other
    if isinstance(other, numbers.Real) and not isinstance(other, bool):
      return PrecisionValue(float(other))
    return None

  def _tol(self, other: PrecisionValue) -> float:
    return max(self._tolerance, other._tolerance)

  # Comparison ------------------------------------------------------------

  def __eq__(self, other: object) -> bool:
    rhs = self._coerce(other)
    if rhs is None:
      return NotImplemented
    if self is rhs or self._value == rhs._value:
      return True
    return abs(self._value - rhs._value) <= self._tol(rhs)

  def __ne__(self, other: object) -> bool:
    result = self.__eq__(other)
    if result is NotImplemented:
      return result
    return not result

  def __lt__(self, other: object) -> bool:
    rhs = self._coerce(other)
    if rhs is None:
      return NotImplemented
    if self == rhs:
      return False
    return self._value < rhs._value

  def __gt__(self, other: object) -> bool:
    rhs = self._coerce(other)
    if rhs is None:
      return NotImplemented
    if self == rhs:
      return False
    return self._value > rhs._value

  def __le__(self, other: object) -> bool:
    rhs = self._coerce(other)
    if rhs is None:
      return NotImplemented
    return self == rhs or self._value < rhs._value

  def __ge__(self, other: object) -> bool:
    rhs = self._coerce(other)
    if rhs is None:
      return NotImplemented
    return self == rhs or self._value > rhs._value

  # Equal values can have different hashes under a tolerance.
  __hash__ = None  # type: ignore[assignment]

  # Arithmetic ------------------------------------------------------------

  def _binary(self, other: object, op) -> PrecisionValue:
    rhs = self._coerce(other)
    if rhs is None:
      return NotImplemented
    return PrecisionValue(op(self._value, rhs._value), self._tol(rhs))

  def __add__(self, other: object) -> PrecisionValue:
    return self._binary(other, lambda a, b: a + b)

  def __radd__(self, other: object) -> PrecisionValue:
    return self._binary(other, lambda a, b: b + a)

  def __sub__(self, other: object) -> PrecisionValue:
    return self._binary(other, lambda a, b: a - b)

  def __rsub__(self, other: object) -> PrecisionValue:
    return self._binary(other, lambda a, b: b - a)

  def __mul__(self, other: object) -> PrecisionValue:
    return self._binary(other, lambda a, b: a * b)

  def __rmul__(self, other: object) -> PrecisionValue:
    return self._binary(other, lambda a, b: b * a)

  def __truediv__(self, other: object) -> PrecisionValue:
    return self._binary(other, lambda a, b: a / b)

  def __rtruediv__(self, other: object) -> PrecisionValue:
    return self._binary(other, lambda a, b: b / a)

  def __mod__(self, other: object) -> PrecisionValue:
    return self._binary(other, math.fmod)

  def __rmod__(self, other: object) -> PrecisionValue:
    return self._binary(other, lambda a, b: math.fmod(b, a))

  # In-place forms keep the left operand's tolerance.
  def _inplace(self, other: object, op) -> PrecisionValue:
    rhs = self._coerce(other)
    if rhs is None:
      return NotImplemented
    return PrecisionValue(op(self._value, rhs._value), self._tolerance)

  def __iadd__(self, other: object) -> PrecisionValue:
    return self._inplace(other, lambda a, b: a + b)

  def __isub__(self, other: object) -> PrecisionValue:
    return self._inplace(other, lambda a, b: a - b)

  def __imul__(self, other: object) -> PrecisionValue:
    return self._inplace(other, lambda a, b: a * b)

  def __itruediv__(self, other: object) -> PrecisionValue:
    return self._inplace(other, lambda a, b: a / b)

  def __imod__(self, other: object) -> PrecisionValue:
    return self._inplace(other, math.fmod)

  def __neg__(self) -> PrecisionValue:
    return PrecisionValue(-self._value, self._tolerance)

  def __abs__(self) -> PrecisionValue:
    return PrecisionValue(abs(self._value), self._tolerance)

  # Conversions -----------------------------------------------------------

  def __float__(self) -> float:
    return self._value

  def __int__(self) -> int:
    return int(self._value)

  def __repr__(self) -> str:
    return f"PrecisionValue({self._value!r}, tolerance={self._tolerance!r})"

  def __str__(self) -> str:
    return f"{self._value}"
