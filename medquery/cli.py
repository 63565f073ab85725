import json
import sys

import click
from tabulate import tabulate

from .config import DEFAULT_BASE_URL, DEFAULT_TEXT_MODEL, DEFAULT_VISION_MODEL, apply_runtime_config
from .conversation import suggested_questions
from .engine import QueryEngine
from .errors import AnswerUnavailableError, QueryError, describe_error
from .records import DrugRecord, Language, QueryMode, record_to_dict
from .transport import LLMClient
from .utils import logger

_DRUG_LABELS = {
    Language.ZH: [
        ("name", "药品名称"),
        ("indications", "适应症"),
        ("dosage", "用法用量"),
        ("contraindications", "禁忌"),
        ("storage", "贮藏"),
        ("sideEffects", "不良反应"),
        ("usage_tips", "温馨提示"),
        ("summary", "总结"),
    ],
    Language.EN: [
        ("name", "Name"),
        ("indications", "Indications"),
        ("dosage", "Dosage"),
        ("contraindications", "Contraindications"),
        ("storage", "Storage"),
        ("sideEffects", "Side effects"),
        ("usage_tips", "Usage tips"),
        ("summary", "Summary"),
    ],
}


def render_drug(record, language):
    data = record_to_dict(record)
    rows = [[label, data[key]] for key, label in _DRUG_LABELS[language]]
    if record.is_high_risk:
        warn = "高危药品" if language == Language.ZH else "High-alert drug"
        rows.insert(1, [warn, record.risk_reason or "-"])
    return tabulate(rows, tablefmt="psql", maxcolwidths=[None, 80])


def render_triage(record, language):
    zh = language == Language.ZH
    header = [
        ["紧急程度" if zh else "Urgency", f"{record.urgency} - {record.urgency_reason}"],
        ["总结" if zh else "Summary", record.summary],
        ["生活建议" if zh else "Lifestyle advice", record.lifestyle_advice],
    ]
    conditions = [
        {
            ("可能疾病" if zh else "Condition"): c.name,
            ("可能性" if zh else "Probability"): c.probability,
            ("药物" if zh else "Medications"): ", ".join(c.medications) or "-",
            ("治疗" if zh else "Treatments"): ", ".join(c.treatments) or "-",
        }
        for c in record.conditions
    ]
    return "\n".join(
        [
            tabulate(header, tablefmt="psql", maxcolwidths=[None, 80]),
            tabulate(conditions, headers="keys", tablefmt="psql", maxcolwidths=30),
        ]
    )


def _echo_phase(index, label):
    click.echo(f"  [{index + 1}/5] {label}", err=True)


def _run_query(engine, mode, language, text, image):
    handle = engine.start_loading_phases(mode, language)
    click.echo(f"  [1/5] {handle.label}", err=True)
    handle.subscribe(_echo_phase)
    try:
        if mode == QueryMode.DRUG_IDENTIFY:
            return engine.identify_drug(text=text, image=image, language=language)
        return engine.triage_symptoms(text=text, image=image, language=language)
    finally:
        engine.stop_loading_phases(handle)


def _chat_loop(engine, record, language):
    context = engine.start_conversation(record, language)
    mode = context.mode
    hint = " / ".join(suggested_questions(mode, language))
    click.echo(("可以继续提问，例如：" if language == Language.ZH else "Ask a follow-up, e.g.: ") + hint)
    while True:
        question = click.prompt(">", default="", show_default=False)
        if not question.strip():
            break
        try:
            click.echo(engine.ask(context, question))
        except AnswerUnavailableError as exc:
            click.echo(exc.fallback, err=True)


def _build_engine(api_key, text_url, vision_url, text_model, vision_model, temperature):
    if not api_key:
        logger.log("[FATAL] LLM API key is required. Please provide it via --api-key or LLM_API_KEY environment variable.")
        sys.exit(1)
    client = LLMClient.from_env(
        api_key=api_key,
        text_url=text_url,
        vision_url=vision_url,
        text_model=text_model,
        vision_model=vision_model,
        temperature=temperature,
    )
    return QueryEngine(client)


def connection_options(f):
    options = [
        click.option('--api-key', envvar='LLM_API_KEY', help='API key for the LLM. Can be set via LLM_API_KEY environment variable.'),
        click.option('--text-url', envvar='LLM_TEXT_URL', default=DEFAULT_BASE_URL, help='Chat-completions URL for text queries.'),
        click.option('--vision-url', envvar='LLM_VISION_URL', help='Chat-completions URL for image queries (defaults to --text-url).'),
        click.option('--text-model', envvar='LLM_TEXT_MODEL', default=DEFAULT_TEXT_MODEL, help='Model for text queries.'),
        click.option('--vision-model', envvar='LLM_VISION_MODEL', default=DEFAULT_VISION_MODEL, help='Vision-capable model for image queries.'),
        click.option('--temperature', envvar='LLM_TEMPERATURE', type=float, default=0.7, help='LLM temperature.'),
        click.option('--lang', 'language', type=click.Choice(['zh', 'en']), default='zh', help='Output language.'),
        click.option('--json-out', type=click.Path(dir_okay=False), help='Write the validated record to this JSON file.'),
        click.option('--chat/--no-chat', default=False, help='Ask follow-up questions after the result.'),
    ]
    for option in reversed(options):
        f = option(f)
    return f


def _finish(engine, mode, language, text, image, json_out, chat):
    language = Language(language)
    try:
        record = _run_query(engine, mode, language, text, image)
    except QueryError as exc:
        logger.debug(f"[CLI] {type(exc).__name__}: {exc}")
        click.echo(describe_error(exc, language), err=True)
        sys.exit(1)

    if isinstance(record, DrugRecord):
        click.echo(render_drug(record, language))
    else:
        click.echo(render_triage(record, language))
    if json_out:
        with open(json_out, "w", encoding="utf-8") as fh:
            json.dump(record_to_dict(record), fh, ensure_ascii=False, indent=2)
        logger.log(f"Saved record to {json_out}")
    if chat:
        _chat_loop(engine, record, language)


def _read_image(path):
    if not path:
        return None
    with open(path, "rb") as fh:
        return fh.read()


@click.group()
def cli():
    """medquery: identify medications and triage symptoms with an LLM."""
    apply_runtime_config()


@cli.command()
@click.argument('name', required=False)
@click.option('--image', type=click.Path(exists=True, dir_okay=False), help='Photo of the drug package, label or pill.')
@connection_options
def drug(name, image, api_key, text_url, vision_url, text_model, vision_model, temperature, language, json_out, chat):
    """Identifies a medication from its NAME or from a photo."""
    if bool(name and name.strip()) == bool(image):
        raise click.UsageError("Provide exactly one of NAME or --image.")
    engine = _build_engine(api_key, text_url, vision_url, text_model, vision_model, temperature)
    _finish(engine, QueryMode.DRUG_IDENTIFY, language, name, _read_image(image), json_out, chat)


@cli.command()
@click.option('--text', help='Free-text description of the symptoms.')
@click.option('--image', type=click.Path(exists=True, dir_okay=False), help='Photo of the affected area.')
@connection_options
def triage(text, image, api_key, text_url, vision_url, text_model, vision_model, temperature, language, json_out, chat):
    """Triages symptoms from a description, a photo, or both."""
    if not (text and text.strip()) and not image:
        raise click.UsageError("Provide --text, --image, or both.")
    engine = _build_engine(api_key, text_url, vision_url, text_model, vision_model, temperature)
    _finish(engine, QueryMode.SYMPTOM_TRIAGE, language, text, _read_image(image), json_out, chat)


def main():
    cli()


if __name__ == '__main__':
    main()
