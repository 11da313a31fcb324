from typing import Any, Dict

from jinja2 import Environment, PackageLoader, TemplateError, select_autoescape

from billing_service.core.exceptions import EmailTemplateError

BRAND_NAME = "AutoAnywhere"

# Autoescaped: every value comes from the caller's request body
environment = Environment(
    loader=PackageLoader("billing_service.infrastructure.email", "templates"),
    autoescape=select_autoescape(["html"]),
)
environment.globals.update({"brand_name": BRAND_NAME})


def render_template(name: str, context: Dict[str, Any]) -> str:
    """Render `templates/<name>` with `context`, raising EmailTemplateError on failure."""
    try:
        return environment.get_template(name).render(**context)
    except TemplateError as e:
        raise EmailTemplateError(name, str(e)) from e
