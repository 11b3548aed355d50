"""
Test suite for Renderer template service.

- Template environment initialization
- Async template rendering and autoescaping
- The bundled email templates

Run all tests:
    pytest tests/services/test_template.py -v

Run with coverage:
    pytest tests/services/test_template.py --cov=app.core.services.template --cov-report=term-missing -v
"""

from pathlib import Path
from unittest.mock import AsyncMock, MagicMock, patch

import pytest
from jinja2 import TemplateNotFound

from app.core.services.template import Renderer


TEMPLATE_DIR = Path(__file__).resolve().parents[2] / "app" / "templates"


@pytest.fixture(autouse=True)
def reset_renderer():
    original = Renderer._env
    yield
    Renderer._env = original


class TestRendererInitialization:

    def test_initialize_sets_environment(self):
        with patch("app.core.services.template.Environment") as mock_env_class:
            mock_env_instance = MagicMock()
            mock_env_class.return_value = mock_env_instance

            Renderer.initialize(template_dir="/templates")

            mock_env_class.assert_called_once()
            assert Renderer._env == mock_env_instance
            assert Renderer.is_initialized() is True

    def test_initialize_with_file_system_loader(self):
        with patch("app.core.services.template.FileSystemLoader") as mock_loader:
            Renderer.initialize(template_dir="/path/to/templates")

            mock_loader.assert_called_once_with("/path/to/templates")

    def test_initialize_enables_async(self):
        with patch("app.core.services.template.Environment") as mock_env_class:
            Renderer.initialize(template_dir="/templates")

            call_kwargs = mock_env_class.call_args[1]
            assert call_kwargs["enable_async"] is True


class TestRendererRenderTemplate:

    @pytest.mark.asyncio
    async def test_render_template_with_context(self):
        mock_env = MagicMock()
        mock_template = MagicMock()
        mock_template.render_async = AsyncMock(return_value="<h1>Hello, John</h1>")
        mock_env.get_template.return_value = mock_template

        Renderer._env = mock_env

        result = await Renderer.render_template("greeting.html", {"name": "John"})

        assert result == "<h1>Hello, John</h1>"
        mock_env.get_template.assert_called_once_with("greeting.html")
        mock_template.render_async.assert_called_once_with(name="John")

    @pytest.mark.asyncio
    async def test_render_template_without_context(self):
        mock_env = MagicMock()
        mock_template = MagicMock()
        mock_template.render_async = AsyncMock(return_value="<p>Content</p>")
        mock_env.get_template.return_value = mock_template

        Renderer._env = mock_env

        await Renderer.render_template("template.html")

        mock_template.render_async.assert_called_once_with()

    @pytest.mark.asyncio
    async def test_render_template_not_initialized(self):
        Renderer._env = None

        with pytest.raises(RuntimeError):
            await Renderer.render_template("otp_email.html")

    @pytest.mark.asyncio
    async def test_render_template_not_found(self, tmp_path):
        Renderer.initialize(str(tmp_path))

        with pytest.raises(TemplateNotFound):
            await Renderer.render_template("missing.html")

    @pytest.mark.asyncio
    async def test_html_is_escaped_and_text_is_not(self, tmp_path):
        (tmp_path / "note.html").write_text("<p>{{ value }}</p>")
        (tmp_path / "note.txt").write_text("{{ value }}")
        Renderer.initialize(str(tmp_path))

        html = await Renderer.render_template("note.html", {"value": "<b>&</b>"})
        text = await Renderer.render_template("note.txt", {"value": "<b>&</b>"})

        assert html == "<p>&lt;b&gt;&amp;&lt;/b&gt;</p>"
        assert text == "<b>&</b>"


# ============================================================================
# Tests for the bundled email templates
# ============================================================================


class TestEmailTemplates:

    @pytest.fixture(autouse=True)
    def renderer(self):
        Renderer.initialize(str(TEMPLATE_DIR))

    @pytest.mark.asyncio
    @pytest.mark.parametrize("suffix", ["html", "txt"])
    async def test_otp_email(self, suffix):
        rendered = await Renderer.render_template(
            f"otp_email.{suffix}",
            {
                "app_name": "BlueRock",
                "user_name": "Jane",
                "otp_code": "482913",
                "purpose": "Withdrawal Verification (WD-10001)",
                "expiry_text": "48 hours",
                "year": 2025,
            },
        )

        assert "482913" in rendered
        assert "48 hours" in rendered
        assert "WD-10001" in rendered

    @pytest.mark.asyncio
    async def test_withdrawal_status_notes_are_optional(self):
        context = {
            "app_name": "BlueRock",
            "user_name": "Jane",
            "withdrawal_id": "WD-10001",
            "amount": "1,000.00",
            "status": "completed",
            "date": "January 15, 2025",
        }

        without_notes = await Renderer.render_template(
            "withdrawal_status_email.txt", {**context, "notes": ""}
        )
        with_notes = await Renderer.render_template(
            "withdrawal_status_email.txt", {**context, "notes": "Sent today"}
        )

        assert "$1,000.00" in without_notes
        assert "Notes from our team" not in without_notes
        assert "Notes from our team: Sent today" in with_notes

    @pytest.mark.asyncio
    @pytest.mark.parametrize(
        "name",
        [
            "welcome_email.html",
            "welcome_email.txt",
            "password_reset_email.html",
            "password_reset_email.txt",
            "withdrawal_status_email.html",
        ],
    )
    async def test_templates_render(self, name):
        rendered = await Renderer.render_template(
            name, {"app_name": "BlueRock", "user_name": "Jane"}
        )

        assert "Jane" in rendered
