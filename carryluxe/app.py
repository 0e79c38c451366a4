from typing import Optional

from flask import Flask, jsonify, make_response, request, send_from_directory
from flask_cors import CORS
from werkzeug.exceptions import RequestEntityTooLarge
from werkzeug.middleware.proxy_fix import ProxyFix

from .admin import AdminConsole
from .auth import SessionGuard, configure_session_cookies
from .catalog import CatalogService
from .commands import register_commands
from .config import Settings, configure_logging
from .errors import StorefrontError
from .media import MediaStore
from .notifications import OrderNotifier
from .orders import OrderIntake
from .store import RecordStore, create_record_store


def request_payload():
    """Form fields for multipart submissions, the JSON body otherwise."""
    if request.form:
        return request.form.to_dict()
    payload = request.get_json(silent=True)
    return payload if isinstance(payload, dict) else {}


def create_app(
    settings: Optional[Settings] = None,
    store: Optional[RecordStore] = None,
    media: Optional[MediaStore] = None,
    notifier: Optional[OrderNotifier] = None,
) -> Flask:
    """Create and configure the Flask application."""
    settings = settings or Settings.from_env()
    configure_logging(settings.log_level)

    app = Flask(__name__)

    # Honor proxy headers so cookies and upload links keep the public HTTPS origin.
    if settings.trusted_proxy_hops:
        app.wsgi_app = ProxyFix(
            app.wsgi_app,
            x_for=settings.trusted_proxy_hops,
            x_proto=settings.trusted_proxy_hops,
            x_host=settings.trusted_proxy_hops,
            x_port=settings.trusted_proxy_hops,
        )

    # --- Configuration ---
    app.config["MAX_CONTENT_LENGTH"] = settings.max_upload_mb * 1024 * 1024
    app.config["CARRYLUXE_SETTINGS"] = settings

    CORS(app, supports_credentials=True, origins=settings.cors_origins or "*")
    configure_session_cookies(app, settings)

    # --- Components ---
    store = store or create_record_store(app, settings)
    media = media or MediaStore(settings)
    notifier = notifier or OrderNotifier(settings)

    guard = SessionGuard(store, settings)
    guard.ensure_admin_from_config()
    catalog = CatalogService(store, show_hidden_detail=settings.show_hidden_product_detail)
    intake = OrderIntake(store, post_commit_hooks=[notifier.notify_new_order])
    console = AdminConsole(
        store,
        media,
        product_limit=settings.product_limit,
        max_images=settings.max_product_images,
        max_upload_files=settings.max_upload_files,
    )

    app.extensions["carryluxe"] = {
        "store": store,
        "media": media,
        "guard": guard,
        "catalog": catalog,
        "intake": intake,
        "console": console,
    }
    app.logger.info("Using %s record store", store.describe())

    # --- Error handling ---

    @app.errorhandler(StorefrontError)
    def handle_storefront_error(exc: StorefrontError):
        if exc.public:
            return jsonify({"error": exc.message}), exc.status_code
        app.logger.error("%s on %s %s: %s", type(exc).__name__, request.method, request.path, exc.message)
        return jsonify({"error": "Server error"}), exc.status_code

    @app.errorhandler(RequestEntityTooLarge)
    def handle_too_large(_exc):
        return jsonify({"error": "Upload too large"}), 413

    @app.after_request
    def disable_api_caching(response):
        if request.path.startswith("/api"):
            response.headers["Cache-Control"] = "no-store, no-cache, must-revalidate, proxy-revalidate"
            response.headers["Pragma"] = "no-cache"
            response.headers["Expires"] = "0"
        return response

    # --- ROUTES ---

    @app.route("/uploads/<path:filename>")
    def serve_uploaded_file(filename: str):
        return send_from_directory(settings.uploads_dir, filename)

    # Products
    @app.route("/api/products", methods=["GET"])
    def list_products():
        return jsonify(catalog.list_active(request.args.get("brand")))

    @app.route("/api/products/<product_id>", methods=["GET"])
    def get_product(product_id: str):
        return jsonify(catalog.get_by_id(product_id))

    # Orders
    @app.route("/api/orders", methods=["POST"])
    def create_order():
        payload = request_payload()
        order = intake.submit(
            payload.get("productId"),
            payload.get("name"),
            payload.get("phone"),
            payload.get("address"),
            email=payload.get("email"),
            note=payload.get("note"),
        )
        return jsonify({"success": True, "order": order})

    # Admin & auth
    @app.route("/api/admin/setup", methods=["POST"])
    def admin_setup():
        payload = request_payload()
        guard.setup(payload.get("token"), payload.get("email"), payload.get("password"))
        return jsonify({"success": True})

    @app.route("/api/admin/login", methods=["POST"])
    def admin_login():
        payload = request_payload()
        response = make_response(jsonify({"success": True}))
        guard.login(payload.get("email"), payload.get("password"), response)
        return response

    @app.route("/api/admin/logout", methods=["POST"])
    def admin_logout():
        response = make_response(jsonify({"success": True}))
        guard.logout(response)
        return response

    @app.route("/api/admin/products", methods=["GET"])
    @guard.admin_required
    def admin_list_products():
        return jsonify(console.list_products())

    @app.route("/api/admin/products", methods=["POST"])
    @guard.admin_required
    def admin_create_product():
        product = console.create_product(request_payload(), request.files.getlist("images"))
        return jsonify({"success": True, "product": product})

    @app.route("/api/admin/products/<product_id>", methods=["PUT"])
    @guard.admin_required
    def admin_update_product(product_id: str):
        product = console.update_product(
            product_id, request_payload(), request.files.getlist("images")
        )
        return jsonify({"success": True, "product": product})

    @app.route("/api/admin/products/<product_id>", methods=["DELETE"])
    @guard.admin_required
    def admin_delete_product(product_id: str):
        console.delete_product(product_id)
        return jsonify({"success": True})

    @app.route("/api/admin/orders", methods=["GET"])
    @guard.admin_required
    def admin_list_orders():
        return jsonify(console.list_orders())

    @app.route("/api/health", methods=["GET"])
    def health():
        return jsonify(
            {
                "status": "ok",
                "adminConfigured": guard.admin_configured(),
                "db": store.describe(),
                "env": settings.env,
            }
        )

    register_commands(app)

    return app
