#!/usr/bin/env python3
"""Channel Estimation Script.

This script runs the channel processing chain on a synthetic link:
Random eigenrays -> Raw response -> Combiner -> Estimation cache -> Tap arrivals

It allows exploring how symbol resolution and equalizer settings reduce a dense
multipath response, and how repeated estimates settle in the cache.
"""

import logging
from collections.abc import Sequence
from typing import Annotated

import numpy as np
import typer

from uw_channel.channel.coordinates import CoordZ
from uw_channel.channel.link import ChannelLink, LinkPair, Transmission
from uw_channel.channel.response import ChannelResponse
from uw_channel.config import Config, Context
from uw_channel.setup_logging import setup_logging

logger = logging.getLogger(__name__)


class RandomMultipath:
  """Eigenray generator standing in for a ray tracer.

  Every link gets a direct path at the straight-line delay followed by
  exponentially decaying echoes with random phase.
  """

  def __init__(self, context: Context, n_rays: int, spread: float) -> None:
    self.context = context
    self.n_rays = n_rays
    self.spread = spread
    self.underwater = context.config.underwater()

  def compute(
    self, pairs: Sequence[LinkPair], frequency_hz: float, time: float
  ) -> list[ChannelResponse]:
    rng = self.context.rng
    responses = []
    for tx, rx in pairs:
      distance = tx.cartesian_distance(rx)
      direct = self.underwater.propagation_delay(tx, rx)
      gain = 10 ** (-self.underwater.attenuation_db(distance, frequency_hz) / 20.0)

      extra = np.sort(rng.uniform(0.0, self.spread, self.n_rays - 1))
      delays = np.concatenate([[direct], direct + extra])
      decay = np.exp(-np.concatenate([[0.0], extra]) / (self.spread / 3.0))
      phases = np.exp(1j * rng.uniform(0.0, 2 * np.pi, self.n_rays))
      samples = gain * decay * phases

      response = self.context.new_response()
      for delay, sample in zip(delays, samples, strict=True):
        response.sum_into(float(delay), complex(sample))
      logger.debug(f"Raw response at t={time}s: {response.summary()}")
      responses.append(response)
    return responses


def main(
  distance: Annotated[
    float, typer.Option("--distance", "-d", help="Link range in meters.")
  ] = 2000.0,
  frequency: Annotated[
    float, typer.Option("--frequency", "-f", help="Carrier frequency in Hz.")
  ] = 25000.0,
  bandwidth: Annotated[
    float, typer.Option("--bandwidth", "-b", help="Signal bandwidth in Hz.")
  ] = 5000.0,
  rays: Annotated[
    int, typer.Option("--rays", "-r", help="Number of eigenrays per link.")
  ] = 40,
  spread: Annotated[
    float, typer.Option("--spread", help="Multipath delay spread in seconds.")
  ] = 0.02,
  symbol_resolution: Annotated[
    float, typer.Option("--symbol-resolution", help="Symbol time in seconds.")
  ] = 2e-4,
  equalizer_time: Annotated[
    float,
    typer.Option(
      "--equalizer-time", help="Equalizer window in seconds (<0: unbounded)."
    ),
  ] = 5e-3,
  snr_threshold: Annotated[
    float, typer.Option("--snr-threshold", help="Detection SNR threshold in dB.")
  ] = 10.0,
  tx_power_db: Annotated[
    float, typer.Option("--tx-power", help="Transmit power in dB re uPa.")
  ] = 180.0,
  repeats: Annotated[
    int, typer.Option("--repeats", "-n", help="Number of transmissions.")
  ] = 3,
  avg_coeff: Annotated[
    float, typer.Option("--avg-coeff", help="Cache moving-average weight.")
  ] = 0.5,
  seed: Annotated[int | None, typer.Option("--seed", help="Random seed.")] = None,
  verbose: Annotated[bool, typer.Option("--verbose", "-v")] = False,
) -> None:
  """Estimate a synthetic underwater acoustic channel."""
  setup_logging(level="DEBUG" if verbose else "INFO")

  config = Config(
    name="estimate_channel",
    symbol_resolution=symbol_resolution,
    equalizer_time=equalizer_time,
    equalizer_snr_threshold_db=snr_threshold,
    avg_coeff=avg_coeff,
    seed=seed,
  )
  context = Context(config)
  link = ChannelLink(RandomMultipath(context, rays, spread), context)

  source = CoordZ(latitude=44.0, longitude=9.0, depth=20.0)
  # One degree of latitude is about 111 km.
  receiver = CoordZ(latitude=44.0 + distance / 111_000.0, longitude=9.0, depth=50.0)
  logger.info(f"Link range: {source.cartesian_distance(receiver):.1f}m")

  transmission = Transmission(
    source=source,
    receivers={1: receiver},
    frequency_hz=frequency,
    bandwidth_hz=bandwidth,
    tx_power=10 ** (tx_power_db / 10.0),
  )

  for index in range(repeats):
    arrivals = link.process(transmission.model_copy(update={"time": float(index)}))
    logger.info(f"Transmission {index}: {len(arrivals)} tap arrivals")
    for arrival in arrivals:
      logger.info(
        f"  node {arrival.receiver}: delay {arrival.delay * 1e3:8.3f}ms, "
        f"tx loss {arrival.tx_loss_db:6.2f}dB"
      )

  estimate = link.estimate(source, receiver)
  if estimate is None:
    logger.warning("No estimate cached for the link")
  else:
    logger.info(f"Cached estimate: {estimate.summary()}")


if __name__ == "__main__":
  typer.run(main)
