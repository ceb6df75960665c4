import logging
import time
from types import SimpleNamespace

from flask import Flask, jsonify, request
from flask_cors import CORS

from api.routes import bp as api_bp
from config import Settings, get_settings
from services.market import IndexQuoteService
from services.silver_api import SilverPriceClient
from services.spot_price import TieredPriceCache
from services.store import (
    FundAssetService,
    FundParameterService,
    FundParameters,
    NotConfiguredStore,
    SQLiteParameterStore,
)
from utils.cache import TTLCache

logger = logging.getLogger(__name__)


def default_parameters(settings: Settings) -> FundParameters:
    return FundParameters(
        base_fund_value=settings.default_base_fund_value,
        commodity_units=settings.default_commodity_units,
        reference_unit_price=settings.default_reference_unit_price,
        base_share_price=settings.default_base_share_price,
        last_updated=time.time(),
    )


def build_services(settings: Settings, store=None, upstream=None, clock=time.time):
    defaults = default_parameters(settings)
    if store is None:
        if settings.database_path:
            store = SQLiteParameterStore(settings.database_path, defaults, clock=clock)
        else:
            logger.warning("DATABASE_PATH not set, fund parameters live in memory only")
            store = NotConfiguredStore()

    if upstream is None:
        upstream = SilverPriceClient(
            api_key=settings.silver_api_key,
            base_url=settings.silver_api_url,
            metal=settings.silver_symbol,
            currency=settings.silver_currency,
            eur_to_usd=settings.eur_to_usd_rate,
            timeout=settings.upstream_timeout_seconds,
        )

    return SimpleNamespace(
        parameters=FundParameterService(store, defaults, clock=clock),
        fund_assets=FundAssetService(store),
        spot_cache=TieredPriceCache(
            upstream,
            store,
            default_price=settings.default_silver_price,
            key=settings.silver_symbol,
            base_interval=settings.price_refresh_interval_seconds,
            jitter=settings.price_refresh_jitter,
            clock=clock,
        ),
        index_quotes=IndexQuoteService(
            settings.sp500_symbol,
            settings.sp500_baseline_price,
            settings.sp500_fallback_price,
            TTLCache(ttl_seconds=settings.sp500_cache_seconds),
        ),
    )


def create_app(settings: Settings = None, services=None):
    settings = settings or get_settings()
    logging.basicConfig(
        level=settings.log_level.upper(),
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )

    app = Flask(__name__)
    app.config["SETTINGS"] = settings
    CORS(app, resources={r"/api/*": {"origins": settings.cors_origin_list}}, supports_credentials=True)
    app.extensions["fund_site"] = services or build_services(settings)
    app.register_blueprint(api_bp)

    # Return JSON for API errors so the frontend never sees HTML
    @app.errorhandler(400)
    def handle_400(e):
        if request.path.startswith('/api/'):
            return jsonify(success=False, error=str(e)), 400
        return e, 400

    @app.errorhandler(401)
    def handle_401(e):
        if request.path.startswith('/api/'):
            return jsonify(success=False, error="Unauthorized"), 401
        return e, 401

    @app.errorhandler(404)
    def handle_404(e):
        if request.path.startswith('/api/'):
            return jsonify(success=False, error="Not found"), 404
        return e, 404

    @app.errorhandler(500)
    def handle_500(e):
        if request.path.startswith('/api/'):
            return jsonify(success=False, error="Internal server error"), 500
        return e, 500

    return app

