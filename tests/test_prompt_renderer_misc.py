import prompt_renderer
import pytest
from jinja2 import DictLoader, Environment, UndefinedError
from pydantic import BaseModel


def test_render_prompt_with_custom_env(monkeypatch):
    env = Environment(
        loader=DictLoader({"greet.j2": "Hello {{ name }}\n"}), autoescape=False
    )
    monkeypatch.setattr(prompt_renderer, "_env", env)
    result = prompt_renderer.render_prompt("greet.j2", {"name": "Bob"})
    assert result == "Hello Bob"


class Person(BaseModel):
    name: str
    nickname: str | None = None


def test_render_prompt_with_pydantic_object(monkeypatch):
    env = Environment(
        loader=DictLoader({"greet.j2": "Hello {{ person.name }}"}), autoescape=False
    )
    monkeypatch.setattr(prompt_renderer, "_env", env)
    result = prompt_renderer.render_prompt("greet.j2", {"person": Person(name="Alice")})
    assert result == "Hello Alice"


def test_tojson_with_pydantic_object(monkeypatch):
    env = Environment(
        loader=DictLoader({"obj.j2": "{{ person | tojson(None) }}"}),
        autoescape=False,
    )
    env.filters["tojson"] = prompt_renderer._tojson
    monkeypatch.setattr(prompt_renderer, "_env", env)
    result = prompt_renderer.render_prompt(
        "obj.j2", {"person": Person(name="Zoë")}
    )
    assert result == '{"name": "Zoë"}'


def test_missing_variable_raises():
    with pytest.raises(UndefinedError):
        prompt_renderer.render_prompt("critic_agent/system.j2", {})


def test_critic_system_prompt_lists_thresholds():
    text = prompt_renderer.render_prompt(
        "critic_agent/system.j2",
        {
            "thresholds": {
                "factual": 0.75,
                "leak_risk": 0.15,
                "ambiguity": 0.25,
                "guessability": 0.4,
            }
        },
    )
    assert "0.75" in text
    assert "0.15" in text
