from __future__ import annotations

import sys
from pathlib import Path

import click
import typer
from dotenv import load_dotenv
from rich.console import Console
from rich.markup import escape

from agentcore_iac import (
    AgentCoreError,
    DocumentParseError,
    check_stack_config,
    convert_json_to_yaml,
    convert_yaml_to_json,
    dump_stack_config_json,
    dump_stack_config_yaml,
    json_config_example,
    load_stack_config_from_file,
    yaml_config_example,
)
from agentcore_iac.loader import JSON_SUFFIXES, YAML_SUFFIXES

from . import __version__
from .cli_shared import (
    AGENTCORE_CONFIG,
    AGENTCORE_STACK_NAME,
    GlobalOpts,
    OpError,
    UsageError,
    _account_session,
    _config_path,
    _emit_json,
    _eprint,
    _stack_name,
    _stack_outputs,
    _write_text,
)

_ERROR_CONSOLE = Console(stderr=True)


def _rich_error(msg: str) -> None:
    _ERROR_CONSOLE.print(f"[bold red]error:[/bold red] {escape(msg)}", highlight=False, soft_wrap=True)


def _version_callback(value: bool) -> None:
    if value:
        typer.echo(f"agentcore-config {__version__}")
        raise typer.Exit(code=0)


app = typer.Typer(
    name="agentcore-config",
    help="Validate, inspect and convert AgentCore stack configs.",
    no_args_is_help=True,
    add_completion=False,
)


def _ctx_global(ctx: typer.Context) -> GlobalOpts:
    if isinstance(ctx.obj, dict) and isinstance(ctx.obj.get("g"), GlobalOpts):
        return ctx.obj["g"]
    return GlobalOpts(pretty=True, quiet=False)


@app.callback()
def app_callback(
    ctx: typer.Context,
    plain_json: bool = typer.Option(False, "--plain-json", help="Emit compact JSON output"),
    quiet: bool = typer.Option(False, "--quiet", help="Reduce stderr logging"),
    version: bool = typer.Option(False, "--version", callback=_version_callback, is_eager=True),
) -> None:
    del version
    ctx.obj = {"g": GlobalOpts(pretty=not plain_json, quiet=quiet)}


def _format_for(path: Path) -> str:
    suffix = path.suffix.lower()
    if suffix in JSON_SUFFIXES:
        return "json"
    if suffix in YAML_SUFFIXES:
        return "yaml"
    raise UsageError(f"unsupported config file extension {path.suffix!r} (use .json, .yaml or .yml)")


_CONFIG_ARG_HELP = f"Config file (.json/.yaml/.yml; env: {AGENTCORE_CONFIG}, default agentcore.yaml)"


@app.command("validate", help="Load a config, apply defaults and report every validation problem.")
def validate_cmd(
    ctx: typer.Context,
    config: str | None = typer.Argument(None, help=_CONFIG_ARG_HELP),
) -> None:
    g = _ctx_global(ctx)
    path = _config_path(config)
    stack_config = load_stack_config_from_file(path)
    result = check_stack_config(stack_config)
    if not result.valid:
        if not g.quiet:
            for issue in result.issues:
                _rich_error(str(issue))
        _emit_json(
            {"ok": False, "config": str(path), "issues": [i.to_dict() for i in result.issues]},
            pretty=g.pretty,
        )
        raise typer.Exit(code=1)

    default_agent = stack_config.default_agent()
    _emit_json(
        {
            "ok": True,
            "config": str(path),
            "stackName": stack_config.stack_name,
            "agentCount": len(stack_config.agents),
            "defaultAgent": default_agent.name if default_agent else None,
        },
        pretty=g.pretty,
    )


@app.command("show", help="Print the config with defaults applied.")
def show_cmd(
    config: str | None = typer.Argument(None, help=_CONFIG_ARG_HELP),
    output_format: str = typer.Option("json", "--format", help="Output format: json or yaml"),
) -> None:
    output_format = output_format.strip().lower()
    if output_format not in {"json", "yaml"}:
        raise UsageError(f"invalid --format {output_format!r} (expected json or yaml)")
    stack_config = load_stack_config_from_file(_config_path(config))
    if output_format == "yaml":
        sys.stdout.write(dump_stack_config_yaml(stack_config))
    else:
        sys.stdout.write(dump_stack_config_json(stack_config))


@app.command("convert", help="Convert a config between JSON and YAML (by file extension).")
def convert_cmd(
    ctx: typer.Context,
    source: str = typer.Argument(..., help="Existing config file"),
    dest: str = typer.Argument(..., help="Target file; its extension picks the format"),
    force: bool = typer.Option(False, "--force", help="Overwrite the target file"),
) -> None:
    g = _ctx_global(ctx)
    src = Path(source)
    dst = Path(dest)
    src_format = _format_for(src)
    dst_format = _format_for(dst)

    # Schema-check the source before converting it.
    load_stack_config_from_file(src)
    text = src.read_text(encoding="utf-8")
    if src_format == dst_format:
        out = text
    elif dst_format == "yaml":
        out = convert_json_to_yaml(text, source=str(src))
    else:
        out = convert_yaml_to_json(text, source=str(src))
    _write_text(path=dst, text=out, overwrite=force)
    if not g.quiet:
        _eprint(f"wrote {dst}")


@app.command("example", help="Write an example config (format from the file extension).")
def example_cmd(
    ctx: typer.Context,
    dest: str = typer.Argument("agentcore.yaml", help="Target file"),
    force: bool = typer.Option(False, "--force", help="Overwrite the target file"),
) -> None:
    g = _ctx_global(ctx)
    path = Path(dest)
    text = json_config_example() if _format_for(path) == "json" else yaml_config_example()
    _write_text(path=path, text=text, overwrite=force)
    if not g.quiet:
        _eprint(f"wrote {path}")


@app.command("stack-output", help="Print CloudFormation outputs of a deployed stack, or a single output value.")
def stack_output_cmd(
    ctx: typer.Context,
    stack: str | None = typer.Option(
        None, "--stack", help=f"Stack name (env override: {AGENTCORE_STACK_NAME})"
    ),
    output_key: str | None = typer.Option(None, "--key", help="Single output key, e.g. VpcId"),
) -> None:
    g = _ctx_global(ctx)
    stack_name = _stack_name(stack)
    outputs = _stack_outputs(_account_session(), stack_name)
    key = (output_key or "").strip()
    if not key:
        _emit_json(outputs, pretty=g.pretty)
        return
    if key not in outputs:
        raise OpError(f"stack {stack_name!r} has no output {key!r}")
    sys.stdout.write(outputs[key] + "\n")



def _run_cli(*, root_app: typer.Typer, prog_name: str, argv: list[str] | None = None) -> int:
    argv = list(sys.argv[1:] if argv is None else argv)
    # Discover and load .env without overriding already-exported values.
    load_dotenv()
    try:
        result = root_app(args=argv, prog_name=prog_name, standalone_mode=False)
        if result is None:
            return 0
        return int(result)
    except typer.Exit as e:
        return int(e.exit_code)
    except click.ClickException as e:
        _rich_error(e.format_message())
        return int(e.exit_code)
    except UsageError as e:
        _rich_error(str(e))
        return 2
    except DocumentParseError as e:
        _rich_error(f"cannot parse config: {e}")
        return 1
    except (OpError, AgentCoreError) as e:
        _rich_error(str(e))
        return 1


def main(argv: list[str] | None = None) -> int:
    return _run_cli(root_app=app, prog_name="agentcore-config", argv=argv)


if __name__ == "__main__":
    raise SystemExit(main())
