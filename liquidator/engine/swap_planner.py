# /liquidator/engine/swap_planner.py
from typing import List, Tuple

from liquidator.core.config import EngineConfig
from liquidator.core.errors import NoRoute, OracleUnavailable
from liquidator.core.fixed_point import PERCENTAGE_FACTOR
from liquidator.core.logger import get_logger
from liquidator.core.models import SwapQuote
from liquidator.engine.interfaces import PriceService, QuoteService

log = get_logger(__name__)


def price_impact_bps(fair_output: int, quoted_output: int) -> int:
    """Shortfall of a quote against fair value, in basis points. Never negative."""
    if fair_output <= 0:
        return PERCENTAGE_FACTOR
    shortfall = fair_output - quoted_output
    if shortfall <= 0:
        return 0
    # Round up so a route is never reported better than it is.
    return -(-shortfall * PERCENTAGE_FACTOR // fair_output)


class SwapPlanner:
    """
    Finds the best route for converting seized collateral back to the debt asset.

    Candidate routes are the direct pair and one hop through each configured
    hub asset. A route is acceptable only when its quoted output is within
    ``max_price_impact_bps`` of the oracle fair value. The returned
    ``min_output_amount`` is the worst output still inside that bound, since
    the swap runs after the liquidation call has already moved state and
    cannot be re-quoted.
    """

    def __init__(self, venue: QuoteService, prices: PriceService, config: EngineConfig):
        self.venue = venue
        self.prices = prices
        self.config = config

    def candidate_routes(self, input_asset: str, output_asset: str) -> List[Tuple[str, ...]]:
        routes = [(input_asset, output_asset)]
        for hub in self.config.hub_assets:
            if hub.lower() in (input_asset.lower(), output_asset.lower()):
                continue
            routes.append((input_asset, hub, output_asset))
        return routes

    def fair_output(self, input_asset: str, input_amount: int, output_asset: str) -> int:
        asset_in = self.config.asset(input_asset)
        asset_out = self.config.asset(output_asset)
        try:
            price_in = self.prices.get_asset_price(input_asset)
            price_out = self.prices.get_asset_price(output_asset)
        except Exception as e:
            raise OracleUnavailable(input_asset, f"price read failed: {e}") from e
        if price_in <= 0 or price_out <= 0:
            raise OracleUnavailable(input_asset, "zero price")
        return input_amount * price_in * 10**asset_out.decimals // (price_out * 10**asset_in.decimals)

    def quote(self, input_asset: str, input_amount: int, output_asset: str) -> SwapQuote:
        if input_amount <= 0:
            raise ValueError("input_amount must be positive")

        if input_asset.lower() == output_asset.lower():
            return SwapQuote(
                input_asset=input_asset,
                input_amount=input_amount,
                output_asset=output_asset,
                expected_output_amount=input_amount,
                min_output_amount=input_amount,
                route=(input_asset,),
            )

        fair = self.fair_output(input_asset, input_amount, output_asset)
        bound = self.config.max_price_impact_bps
        candidates: List[Tuple[int, Tuple[str, ...], int]] = []

        for route in self.candidate_routes(input_asset, output_asset):
            try:
                amounts = self.venue.get_amounts_out(input_amount, list(route))
            except Exception as e:
                log.debug("ROUTE_UNAVAILABLE", route=list(route), error=str(e))
                continue
            quoted = int(amounts[-1])
            impact = price_impact_bps(fair, quoted)
            if impact > bound:
                log.info("ROUTE_REJECTED_PRICE_IMPACT", route=list(route), impact_bps=impact, bound_bps=bound)
                continue
            candidates.append((quoted, route, impact))

        if not candidates:
            raise NoRoute(input_asset, output_asset, f"no route within {bound} bps of fair value {fair}")

        # Highest output, then fewer hops, then lowest route by address.
        candidates.sort(key=lambda c: (-c[0], len(c[1]), tuple(a.lower() for a in c[1])))
        quoted, route, impact = candidates[0]
        floor = fair * (PERCENTAGE_FACTOR - bound) // PERCENTAGE_FACTOR
        min_out = min(quoted, floor)
        quote = SwapQuote(
            input_asset=input_asset,
            input_amount=input_amount,
            output_asset=output_asset,
            expected_output_amount=quoted,
            min_output_amount=min_out,
            route=route,
            price_impact_bps=impact,
        )
        log.info(
            "SWAP_QUOTED",
            route=list(route),
            input_amount=str(input_amount),
            expected_out=str(quoted),
            min_out=str(min_out),
            impact_bps=impact,
        )
        return quote
