from flask import Flask, jsonify, request
import ipaddress
import logging
from urllib.parse import urlparse

from dotenv import load_dotenv

from hls_relay.config import RelayConfig
from hls_relay.errors import InvalidTarget, MissingParameter, RelayError
from hls_relay.fetcher import UpstreamFetcher
from hls_relay.headers import ProxyRequest
from hls_relay.playlist import MANIFEST, classify
from hls_relay.relay import ATTRIBUTION_HEADER, manifest_response, stream_response


def configure_logging(debug):
    if debug:
        logging.basicConfig(level=logging.DEBUG)
    else:
        logging.basicConfig(level=logging.WARNING)
    logging.getLogger('requests').setLevel(logging.WARNING)
    logging.getLogger('urllib3').setLevel(logging.WARNING)


def parse_proxy_request(args, headers):
    """
    Validates the inbound query and captures what may travel upstream.
    """
    url = (args.get("url") or "").strip()
    if not url:
        raise MissingParameter()

    try:
        parsed_url = urlparse(url)
        hostname = parsed_url.hostname
        parsed_url.port
    except ValueError:
        raise InvalidTarget()
    if parsed_url.scheme not in ("http", "https") or not hostname:
        raise InvalidTarget()
    # Upstream connections are IPv4 only.
    try:
        literal = ipaddress.ip_address(hostname)
    except ValueError:
        literal = None
    if literal is not None and literal.version != 4:
        raise InvalidTarget()

    return ProxyRequest(
        url=url,
        range=headers.get("Range"),
        user_agent=headers.get("User-Agent"),
        client_host=headers.get("Host"),
        client_origin=headers.get("Origin"),
    )


def error_response(payload, status, outcome=None):
    response = jsonify(payload)
    response.status_code = status
    if outcome is not None and outcome.variant is not None:
        response.headers[ATTRIBUTION_HEADER] = outcome.variant.name
    return response


def create_app(config=None, session=None):
    """
    Builds the relay app. Without an explicit config, settings come from the
    environment (and ``.env``) and logging is configured here.
    """
    if config is None:
        load_dotenv()
        config = RelayConfig.from_env()
        configure_logging(config.debug)
    app = Flask(__name__)
    app.config["RELAY"] = config
    fetcher = UpstreamFetcher(config, session=session)

    @app.after_request
    def add_cors_headers(response):
        response.headers.setdefault("Access-Control-Allow-Origin", "*")
        response.headers.setdefault("Access-Control-Allow-Methods", "GET, OPTIONS")
        response.headers.setdefault("Access-Control-Allow-Headers", "Range, Content-Type")
        response.headers.setdefault(
            "Access-Control-Expose-Headers",
            f"Content-Range, Content-Length, {ATTRIBUTION_HEADER}",
        )
        return response

    @app.route(config.proxy_path)
    def proxy():
        """
        Handles proxy requests for M3U8 playlists and media segments.
        """
        try:
            proxy_request = parse_proxy_request(request.args, request.headers)
        except RelayError as e:
            app.logger.warning(f"Rejected proxy request: {e.message}")
            return jsonify(e.to_dict()), e.status

        app.logger.debug(
            f"Received URL: {proxy_request.url} "
            f"(client host={proxy_request.client_host}, origin={proxy_request.client_origin})"
        )

        outcome = None
        try:
            outcome = fetcher.fetch(proxy_request)
            app.logger.debug(
                f"Terminal upstream status {outcome.status} via '{outcome.variant.name}'"
            )

            if classify(outcome, proxy_request.url) == MANIFEST:
                app.logger.debug("Detected playlist, rewriting")
                return manifest_response(outcome, proxy_request.url, config)

            app.logger.debug("Proxying media segment content.")
            return stream_response(outcome, proxy_request.url, config)

        except RelayError as e:
            app.logger.error(f"Relay failed for {proxy_request.url}: {e.message}")
            return error_response(e.to_dict(), e.status, outcome)
        except Exception as e:
            app.logger.exception("An unexpected error occurred while proxying the request")
            if outcome is not None:
                outcome.close()
            return error_response({"error": "Proxy error", "details": str(e)}, 500, outcome)

    @app.route("/health")
    def health():
        return "OK", 200

    return app


if __name__ == "__main__":
    app = create_app()
    relay_config = app.config["RELAY"]
    app.run(host=relay_config.host, port=relay_config.port, threaded=True)
