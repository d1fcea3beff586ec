"""
Application - wires controllers, global middleware and docs onto a router.

Example:
    app = Application([ItemsController], config=ConfigLoader.load(env_file=".env"))

    # uvicorn myservice:app
    # or
    app.run()
"""

from typing import Any, Iterable, List, Optional, Sequence
import logging

from .asgi import ASGIRouter, HttpRouter
from .auth import HeaderIdentityMiddleware
from .config import AppConfig
from .controller.compiler import CompiledController, ControllerCompiler
from .controller.openapi import OpenAPIConfig, OpenAPIGenerator, generate_swagger_html
from .di import Resolver
from .discovery import discover_controllers
from .middleware import CORSMiddleware, ContextMiddleware, ExceptionMiddleware, LoggingMiddleware


def build_app(
    router: HttpRouter,
    controllers: Iterable[Any],
    compiler: Optional[ControllerCompiler] = None,
) -> List[CompiledController]:
    """
    Compile every controller instance and register its routes on ``router``.

    All controllers are compiled before the first route is registered, so a
    misconfigured controller leaves ``router`` untouched.

    Raises:
        ConfigurationFault: A controller or route is misconfigured
    """
    compiler = compiler or ControllerCompiler()
    compiled = [compiler.compile(instance) for instance in controllers]
    for result in compiled:
        compiler.register(result, router)
    return compiled


class Application:
    """
    ASGI application assembled from controllers.

    ``build()`` runs once: on lifespan startup when the server speaks the
    lifespan protocol, otherwise on the first request. Controllers are
    compiled before the router is touched; a configuration fault aborts the
    build and, under lifespan, reports ``lifespan.startup.failed``.
    """

    def __init__(
        self,
        controllers: Sequence[Any],
        config: Optional[AppConfig] = None,
        container: Optional[Resolver] = None,
        router: Optional[ASGIRouter] = None,
    ):
        self.controllers = list(controllers)
        self.config = config or AppConfig()
        self.container = container
        self.router = router or ASGIRouter()
        self.compiler = ControllerCompiler(
            pre_stage=self.config.pre_middleware_placement,
            trust_identity_headers=self.config.trust_identity_headers,
        )
        self.compiled: List[CompiledController] = []
        self.logger = logging.getLogger("talon.app")
        self._built = False
        self.router.on_startup.insert(0, self.build)

    # ------------------------------------------------------------------
    # Build
    # ------------------------------------------------------------------

    def build(self) -> "Application":
        if self._built:
            return self

        instances = [self._instantiate(target) for target in self._targets()]
        compiled = [self.compiler.compile(instance) for instance in instances]

        self._install_middleware()
        if self.config.docs_enabled:
            self._register_docs()
        for result in compiled:
            self.compiler.register(result, self.router)

        self.compiled = compiled
        self._built = True
        self.logger.info(
            "%s ready: %d controllers, %d routes",
            self.config.application_name,
            len(self.compiled),
            sum(len(c.routes) for c in self.compiled),
        )
        return self

    def _install_middleware(self) -> None:
        self.router.use(ExceptionMiddleware(debug=self.config.debug))
        self.router.use(ContextMiddleware())
        if self.config.request_logging:
            self.router.use(LoggingMiddleware())
        if self.config.cors_enabled:
            self.router.use(CORSMiddleware(allow_origins=self.config.cors_origins))
        if self.config.trust_identity_headers:
            self.router.use(HeaderIdentityMiddleware())

    def _targets(self) -> List[Any]:
        if not self.config.autoload_packages:
            return list(self.controllers)
        declared = {t if isinstance(t, type) else type(t) for t in self.controllers}
        discovered = discover_controllers(self.config.autoload_packages)
        return self.controllers + [cls for cls in discovered if cls not in declared]

    def _instantiate(self, target: Any) -> Any:
        if not isinstance(target, type):
            return target
        if self.container is not None and _is_registered(self.container, target):
            return self.container.resolve(target)
        return target()

    def openapi_config(self) -> OpenAPIConfig:
        return OpenAPIConfig(
            title=self.config.application_name,
            docs_path=self.config.docs_path,
            openapi_json_path=self.config.docs_json_path,
        )

    def openapi(self) -> dict:
        targets = [c.controller_class for c in self.compiled] if self._built else self.controllers
        return OpenAPIGenerator(self.openapi_config()).generate(targets)

    def _register_docs(self) -> None:
        docs_config = self.openapi_config()

        async def openapi_json(request, response, next):
            response.json(self.openapi())

        async def swagger_ui(request, response, next):
            response.send(generate_swagger_html(docs_config), media_type="text/html; charset=utf-8")

        self.router.add_route("GET", docs_config.openapi_json_path, [], openapi_json)
        self.router.add_route("GET", docs_config.docs_path, [], swagger_ui)
        self.logger.debug("Docs served at %s", docs_config.docs_path)

    # ------------------------------------------------------------------
    # ASGI / serving
    # ------------------------------------------------------------------

    async def __call__(self, scope: dict, receive: Any, send: Any) -> None:
        if scope["type"] != "lifespan":
            self.build()
        await self.router(scope, receive, send)

    def run(self) -> None:
        """Run the development server."""
        logging.basicConfig(
            level=getattr(logging, self.config.log_level.upper(), logging.INFO),
            format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
        )
        self.build()

        import uvicorn

        self.logger.info("Starting uvicorn server on %s:%d", self.config.host, self.config.port)
        uvicorn.run(
            self,
            host=self.config.host,
            port=self.config.port,
            log_level=self.config.log_level.lower(),
        )


def _is_registered(container: Resolver, token: Any) -> bool:
    check = getattr(container, "is_registered", None)
    return True if check is None else bool(check(token))
