"""Tests for the response reduction."""

import math

import numpy as np
import pytest
from pydantic import ValidationError

from uw_channel.channel.combiner import CombinerParams, combine
from uw_channel.channel.exceptions import InvalidResponseError
from uw_channel.channel.response import ChannelResponse


@pytest.fixture
def multipath() -> ChannelResponse:
  """Weak precursor, strong arrival cluster and a late echo."""
  return ChannelResponse.from_arrays(
    [0.0, 1.0e-3, 1.5e-3, 1.0e-2], [0.001, 0.5, 0.1j, 0.05]
  )


class TestCombinerParams:
  """Tests for CombinerParams validation."""

  def test_defaults(self) -> None:
    """Test that defaults disable every stage."""
    params = CombinerParams()
    assert params.symbol_resolution == 0.0
    assert params.equalizer_time == 0.0
    assert params.equalizer_attenuation_db == 0.0
    assert not params.windowed

  @pytest.mark.parametrize(
    "kwargs",
    [
      {"symbol_resolution": -1e-4},
      {"symbol_resolution": math.inf},
      {"equalizer_time": -1.0},
      {"equalizer_time": math.nan},
      {"equalizer_attenuation_db": -3.0},
    ],
  )
  def test_validation(self, kwargs: dict) -> None:
    """Test that out-of-range parameters are rejected."""
    with pytest.raises(ValidationError):
      CombinerParams(**kwargs)

  def test_unbounded_equalizer(self) -> None:
    """Test that an infinite equalizer is accepted but not windowed."""
    params = CombinerParams(equalizer_time=math.inf)
    assert not params.windowed

  def test_from_legacy(self) -> None:
    """Test negative equalizer time and threshold mapping."""
    params = CombinerParams.from_legacy(
      symbol_resolution=1e-4, equalizer_time=-1.0, equalizer_attenuation_db=-20.0
    )
    assert params.equalizer_time == math.inf
    assert params.equalizer_attenuation_db == 0.0

  def test_frozen(self) -> None:
    """Test that parameters are immutable."""
    params = CombinerParams()
    with pytest.raises(ValidationError):
      params.symbol_resolution = 1.0  # type: ignore[misc]


class TestCombineInputs:
  """Tests for the input handling of combine."""

  @pytest.mark.parametrize(
    "raw", [ChannelResponse(), ChannelResponse.not_valid()], ids=["empty", "not_valid"]
  )
  def test_invalid_input_raises(self, raw: ChannelResponse) -> None:
    """Test that empty and not-valid responses are refused."""
    with pytest.raises(InvalidResponseError):
      combine(raw, CombinerParams())

  def test_converted_response_needs_delay(self) -> None:
    """Test that a wrapped sample cannot be combined without a delay."""
    raw = ChannelResponse.from_sample(complex(0.1, 0.1))
    with pytest.raises(InvalidResponseError):
      combine(raw, CombinerParams())

  def test_converted_response_is_rekeyed(self) -> None:
    """Test that a wrapped sample moves to the propagation delay."""
    raw = ChannelResponse.from_sample(complex(0.1, 0.1))
    result = combine(raw, CombinerParams(), propagation_delay=1.25)

    assert list(result) == [1.25]
    assert result[1.25] == complex(0.1, 0.1)

  def test_single_tap_is_copied(self) -> None:
    """Test that a single tap passes through as a new response."""
    raw = ChannelResponse.from_arrays([0.3], [0.2])
    result = combine(raw, CombinerParams(symbol_resolution=1e-3, equalizer_time=1e-2))

    assert result == raw
    assert result is not raw

  def test_input_is_not_modified(self, multipath: ChannelResponse) -> None:
    """Test that combine leaves the raw response untouched."""
    before = multipath.copy()
    combine(multipath, CombinerParams(symbol_resolution=1e-3, equalizer_time=1e-3))
    assert multipath == before


class TestCombine:
  """Tests for the reduction stages."""

  def test_end_to_end_two_taps(self) -> None:
    """Test coherent sampling, windowing and the post-window echo."""
    raw = ChannelResponse.from_arrays(
      [0.0, 0.00005, 0.002], [complex(0.1, 0), complex(0.05, 0), complex(0.01, 0)]
    )
    params = CombinerParams(
      symbol_resolution=0.0001, equalizer_time=0.001, equalizer_attenuation_db=0.0
    )
    result = combine(raw, params)

    assert len(result) == 2
    assert list(result) == [0.0, 0.002]
    assert result[0.0].abs() == pytest.approx(0.15)
    assert result[0.002] == complex(0.01, 0)

  def test_no_equalizer_keeps_symbol_taps(self, multipath: ChannelResponse) -> None:
    """Test that a zero equalizer time returns the coherent taps."""
    params = CombinerParams(symbol_resolution=1e-3)
    result = combine(multipath, params)
    assert result == multipath.coherent_sum_sample(1e-3)

  def test_no_sampling_no_equalizer_is_copy(self, multipath: ChannelResponse) -> None:
    """Test that disabled stages return an equal, independent response."""
    result = combine(multipath, CombinerParams())
    assert result == multipath
    assert result is not multipath

  def test_threshold_opens_window_at_first_strong_tap(
    self, multipath: ChannelResponse
  ) -> None:
    """Test that taps before the first detectable one are dropped."""
    params = CombinerParams(equalizer_time=1e-3, equalizer_attenuation_db=20.0)
    result = combine(multipath, params)

    assert list(result) == [1.0e-3, 1.0e-2]
    assert result[1.0e-3].abs() == pytest.approx(np.sqrt(0.5**2 + 0.1**2))
    assert result[1.0e-2] == 0.05

  def test_threshold_never_met_falls_back_to_first_tap(
    self, multipath: ChannelResponse
  ) -> None:
    """Test that the window starts at the first tap if none is strong enough."""
    params = CombinerParams(equalizer_time=1e-3, equalizer_attenuation_db=1.0)
    result = combine(multipath, params)

    assert result.min_delay == 0.0

  def test_unbounded_equalizer_merges_everything(
    self, multipath: ChannelResponse
  ) -> None:
    """Test that an infinite equalizer sums all energy into one tap."""
    result = combine(multipath, CombinerParams(equalizer_time=math.inf))

    energy = np.sum(np.abs(multipath.samples()) ** 2)
    assert len(result) == 1
    assert result[0.0].abs() == pytest.approx(np.sqrt(energy))

  def test_equalizer_split_covers_every_tap(self, multipath: ChannelResponse) -> None:
    """Test that each sampled tap lands in exactly one window part."""
    coherent = multipath.coherent_sum_sample(1e-4)
    start = coherent.min_delay
    end = start + 1.2e-3

    in_window = coherent.crop(start, end)
    post_window = coherent.crop(end, math.inf)

    assert len(in_window) + len(post_window) == len(coherent)
    assert in_window + post_window == coherent

  def test_window_holding_every_tap(self) -> None:
    """Test that an empty post-window part adds nothing."""
    raw = ChannelResponse.from_arrays([0.0, 2e-4], [0.3, 0.4])
    result = combine(raw, CombinerParams(equalizer_time=1e-3))

    assert len(result) == 1
    assert result[0.0].abs() == pytest.approx(0.5)
