import time

from flask import Blueprint, current_app, jsonify, request

from api.auth import require_admin
from services.spot_price import PriceSource
from services.store import InvalidParameters
from services.valuation import derive_valuation
from utils.result import ErrorKind

bp = Blueprint('api', __name__, url_prefix='/api')


def _services():
    return current_app.extensions['fund_site']


def _spot_json(spot):
    return {
        'success': True,
        'silverPrice': spot.price,
        'currency': current_app.config['SETTINGS'].silver_currency,
        'unit': 'troy_ounce',
        'timestamp': int(time.time() * 1000),
        'fetchedAt': int(spot.fetched_at * 1000),
        'source': spot.source.value,
    }


@bp.get('/health')
def health():
    return {'status': 'ok'}


@bp.get('/silver-price')
def silver_price():
    return jsonify(_spot_json(_services().spot_cache.get_spot_price()))


@bp.post('/silver-price/refresh')
@require_admin
def refresh_silver_price():
    cache = _services().spot_cache
    cache.invalidate()
    return jsonify(_spot_json(cache.get_spot_price()))


@bp.get('/share-price')
def share_price():
    services = _services()
    params, _ = services.parameters.get()
    spot = services.spot_cache.get_spot_price()

    # nothing better than the hard-coded default: value at the reference price instead
    if spot.source == PriceSource.DEFAULT:
        live_price, source = params.reference_unit_price, 'reference'
    else:
        live_price, source = spot.price, spot.source.value

    return jsonify(derive_valuation(params, live_price, source, time.time()).to_json())


@bp.get('/sp500-price')
def sp500_price():
    index = _services().index_quotes
    period = (request.args.get('period') or '').strip()
    payload = index.quote()
    if period:
        try:
            payload['history'] = index.history(period)
        except ValueError as ve:
            return jsonify(success=False, error=str(ve)), 400
    return jsonify(payload)


@bp.get('/fund-params')
def get_fund_params():
    params, source = _services().parameters.get()
    return jsonify(success=True, source=source, **params.to_json())


@bp.post('/fund-params')
@require_admin
def update_fund_params():
    parameters = _services().parameters
    payload = request.get_json(silent=True)
    try:
        result = parameters.update(payload)
    except InvalidParameters as e:
        return jsonify(success=False, error=str(e), details=e.details), 400

    if not result.ok:
        return jsonify(success=False, error='Failed to update fund parameters'), 500

    if getattr(parameters.store, 'configured', True):
        message = 'Fund parameters updated successfully'
    else:
        message = 'Fund parameters updated (fallback storage)'
    return jsonify(success=True, message=message, **result.value.to_json())


@bp.get('/fund-assets')
def get_fund_assets():
    assets, source = _services().fund_assets.history()
    return jsonify(
        success=True,
        source=source,
        fundAssets=[a.to_json() for a in assets],
        currentTotalAssets=assets[-1].to_json()['totalAssets'] if assets else 0,
    )


@bp.post('/fund-assets')
@require_admin
def update_fund_assets():
    fund_assets = _services().fund_assets
    try:
        result = fund_assets.add(request.get_json(silent=True))
    except InvalidParameters as e:
        return jsonify(success=False, error=str(e), details=e.details), 400

    if not result.ok:
        if result.kind == ErrorKind.NOT_CONFIGURED:
            return jsonify(success=False, error='Fund asset storage not configured'), 500
        return jsonify(success=False, error='Failed to update fund assets'), 500
    return jsonify(success=True, message='Fund assets updated successfully', **result.value.to_json())
