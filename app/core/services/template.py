from jinja2 import Environment, FileSystemLoader, select_autoescape


class Renderer:
    """Process-wide Jinja2 environment for email templates."""

    _env: Environment | None = None

    @classmethod
    def initialize(cls, template_dir: str) -> None:
        """
        Build the Jinja2 environment over ``template_dir``.

        HTML templates are autoescaped; ``.txt`` templates are not. Rendering
        is async so it can run inside request handlers.
        """
        cls._env = Environment(
            loader=FileSystemLoader(template_dir),
            autoescape=select_autoescape(["html"]),
            enable_async=True,
        )

    @classmethod
    def is_initialized(cls) -> bool:
        return cls._env is not None

    @classmethod
    async def render_template(
        cls, template_name: str, context: dict | None = None
    ) -> str:
        """
        Render ``template_name`` with ``context``.

        Raises:
            TemplateNotFound: If the template does not exist.
            RuntimeError: If ``initialize`` was never called.
        """
        if cls._env is None:
            raise RuntimeError("Renderer not initialized. Call initialize() first.")
        template = cls._env.get_template(template_name)
        return await template.render_async(**(context or {}))
