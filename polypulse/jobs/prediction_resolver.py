# 📁 polypulse/jobs/prediction_resolver.py
import logging

logger = logging.getLogger(__name__)

RESOLVED_PRICE = 0.99


def winning_side(market):
    """'YES' or 'NO' for a closed market whose outcome price has settled, else None"""
    if not market or not market.get('closed'):
        return None
    yes, no = market.get('yesPrice'), market.get('noPrice')
    if yes is not None and yes >= RESOLVED_PRICE:
        return 'YES'
    if no is not None and no >= RESOLVED_PRICE:
        return 'NO'
    return None


def resolve_predictions(ctx):
    """Settle open predictions on markets that have resolved; returns predictions settled"""
    market_ids = ctx.predictions.get_unresolved_market_ids()
    if not market_ids:
        return 0

    settled = 0
    for market in ctx.markets.get_markets_by_ids(market_ids):
        side = winning_side(market)
        if side is None:
            continue
        count = ctx.predictions.resolve_market(market['id'], side)
        settled += count
        logger.info(f"🎯 Market {market['id']} resolved {side}: {count} predictions settled")
    return settled
