import logging
import sys

import click
from click.core import ParameterSource

from . import applier, encoder
from .config import load_config
from .errors import ConfigError, IPSError, UsageError

USAGE = """\
Usage: {prog} DATAFILE IPSFILE
Usage: {prog} --create=OUTFILE ORIGINAL MODIFIED

First usage syntax: applies IPS patch IPSFILE to DATAFILE (DATAFILE
is modified).

Second usage syntax: create IPS patch file named OUTFILE, consisting
of the differences between files ORIGINAL and MODIFIED.  The alternate
short flag called -c is available as well.

Options:
  -c, --create OUTFILE   Create a patch instead of applying one
  -d, --debug            Trace offsets, lengths and record bytes
  --legacy               Create mode: historical byte-exact encoder
  --strict / --no-strict Create mode: refuse offsets past 24 bits (default)
  --config PATH          YAML file with defaults (default: ./ipspatch.yaml)
  -h, -?, --help         Show this message

Examples:

  {prog} myfile.nes mypatch.ips
  {prog} --create=result.ips original.nes modified.nes
  {prog} -c result.ips original.nes modified.nes
"""


def _show_usage(ctx, param, value):
    if not value or ctx.resilient_parsing:
        return
    click.echo(USAGE.format(prog=ctx.info_name))
    ctx.exit(1)


def _configure_logging(debug: bool) -> None:
    if debug:
        logging.basicConfig(stream=sys.stdout, level=logging.DEBUG, format="==> DEBUG: %(message)s", force=True)
    else:
        logging.basicConfig(level=logging.WARNING, format="%(levelname)s: %(message)s", force=True)


def _file_error(e: OSError) -> click.ClickException:
    if e.filename:
        return click.ClickException(f"Can't open {e.filename}: {e.strerror}")
    return click.ClickException(str(e))


@click.command(context_settings={"help_option_names": []})
@click.option("-h", "-?", "--help", is_flag=True, expose_value=False, is_eager=True, callback=_show_usage, help="Show usage and exit.")
@click.option("-c", "--create", "create", type=click.Path(dir_okay=False), metavar="OUTFILE", help="Create a patch named OUTFILE")
@click.option("-d", "--debug", is_flag=True, help="Verbose trace of offsets, lengths and record bytes")
@click.option("--legacy", is_flag=True, help="Create mode: historical byte-exact encoder")
@click.option("--strict/--no-strict", default=True, help="Create mode: refuse offsets past 24 bits")
@click.option("--config", "config_path", type=click.Path(dir_okay=False), default=None, help="YAML defaults file")
@click.argument("files", nargs=-1, type=click.Path(dir_okay=False))
@click.pass_context
def main(ctx, create, debug, legacy, strict, config_path, files):
    """Apply or create IPS patches."""
    try:
        cfg = load_config(config_path)
    except ConfigError as e:
        raise click.ClickException(str(e))
    except OSError as e:
        raise _file_error(e)

    # flags given on the command line win over the config file
    def given(name):
        return ctx.get_parameter_source(name) != ParameterSource.DEFAULT

    cfg = cfg.override(
        debug=debug if given("debug") else None,
        legacy=legacy if given("legacy") else None,
        strict=strict if given("strict") else None,
    )
    _configure_logging(cfg.debug)

    if len(files) != 2:
        names = "ORIGINAL MODIFIED" if create else "DATAFILE IPSFILE"
        # no ctx: the two-syntax text replaces click's generated usage line
        raise UsageError(f"Expected two files: {names}\n\n" + USAGE.format(prog=ctx.info_name))

    try:
        if create:
            original, modified = files
            size = encoder.create_patch_file(create, original, modified, legacy=cfg.legacy, strict=cfg.strict)
            click.echo(f"IPS patch written: {create} ({size} bytes)")
        else:
            datafile, ipsfile = files
            count = applier.apply_patch_file(datafile, ipsfile)
            click.echo(f"Applied {count} records from {ipsfile} to {datafile}")
    except OSError as e:
        raise _file_error(e)
    except IPSError as e:
        raise click.ClickException(str(e))


if __name__ == "__main__":
    main()
