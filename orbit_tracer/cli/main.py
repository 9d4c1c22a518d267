"""
Command-line interface for orbit trace rendering.

The render parameters take single-letter flags; `--mb` adds the escape-time
overlay and the output image is a positional argument.
"""

import json
import logging
import sys
import time

import click

from .. import __version__
from ..acceleration.numba_backend import numba_version
from ..api import OrbitRenderer
from ..core.config import DrawMode, RenderConfig

logger = logging.getLogger(__name__)

MODE_CHOICES = [mode.label for mode in DrawMode]


@click.group(invoke_without_command=True)
@click.option('--version', is_flag=True, help='Show version information')
@click.option('--verbose', '-v', is_flag=True, help='Enable verbose logging')
@click.option('--quiet', '-q', is_flag=True, help='Suppress most output')
@click.pass_context
def main(ctx, version, verbose, quiet):
    """
    Orbit Tracer - render orbit traces of z -> z^pow + c.

    Every sampled coordinate is iterated and its orbit drawn as antialiased
    line segments; dense regions accumulate into bright, opaque areas.
    """
    if quiet:
        logging.basicConfig(level=logging.ERROR)
    elif verbose:
        logging.basicConfig(level=logging.DEBUG,
                            format='%(asctime)s - %(name)s - %(levelname)s - %(message)s')
    else:
        logging.basicConfig(level=logging.INFO,
                            format='%(levelname)s: %(message)s')

    if version:
        click.echo(f"Orbit Tracer v{__version__}")
        click.echo(f"Python: {sys.version}")
        click.echo(f"Numba: {numba_version()}")

        if ctx.invoked_subcommand is None:
            ctx.exit(0)
    elif ctx.invoked_subcommand is None:
        click.echo(ctx.get_help())
        ctx.exit(0)

    ctx.ensure_object(dict)
    ctx.obj['verbose'] = verbose
    ctx.obj['quiet'] = quiet


@main.command()
@click.argument('image_name', required=False, type=click.Path(dir_okay=False))
@click.option('--config', 'config_file', type=click.Path(exists=True, dir_okay=False),
              help='JSON configuration file')
@click.option('-s', '--size', type=click.IntRange(min=1), help='Image width and height [2000]')
@click.option('-b', '--bounds', type=float, help='Escape bound and sampling half-extent [2.0]')
@click.option('-d', '--delta', type=float, help='Grid sampling step [0.01]')
@click.option('-l', '--limit', type=click.IntRange(min=0), help='Maximum iterations per orbit [100]')
@click.option('-z', '--zoom', type=float, help='Pixels per unit [900]')
@click.option('-r', '--re-off', 're_off', type=float, help='Real offset [0.4]')
@click.option('-i', '--im-off', 'im_off', type=float, help='Imaginary offset [0.0]')
@click.option('--chunk_len', '--chunk-len', 'chunk_len', type=click.IntRange(min=1),
              help='Coordinates per parallel work unit [10000]')
@click.option('-o', '--opacity', type=click.IntRange(0, 65535), help='Per-segment alpha [64]')
@click.option('-m', '--mode', type=click.Choice(MODE_CHOICES, case_sensitive=False),
              help='Which traces to draw [All]')
@click.option('--mb', 'overlay_mandel', is_flag=True, help='Overlay the escape-time set')
@click.option('-p', '--pow', 'power', type=float, help='Exponent of the map [2.0]')
@click.option('--processes', type=click.IntRange(min=1), help='Number of worker processes')
@click.option('--save-raw', is_flag=True, help='Also save the 16-bit canvas as .npy')
@click.option('--no-metadata', is_flag=True, help='Do not embed render metadata')
@click.pass_context
def render(ctx, image_name, config_file, power, overlay_mandel, processes,
           save_raw, no_metadata, **kwargs):
    """
    Render an orbit trace image.

    IMAGE_NAME: Output image file path (.png, .tif, .tiff) [image.png]
    """
    obj = ctx.obj or {}

    try:
        config = RenderConfig.from_json_file(config_file) if config_file else RenderConfig()
        config = config.with_overrides(
            image_name=image_name,
            pow=power,
            num_processes=processes,
            overlay_mandel=True if overlay_mandel else None,
            save_raw_data=True if save_raw else None,
            save_metadata=False if no_metadata else None,
            **kwargs,
        ).validate()

        renderer = OrbitRenderer(config)

        click.echo(f"Rendering {config.size}x{config.size} orbit traces "
                   f"(pow={config.pow}, mode={config.mode.label})...")
        start_time = time.time()

        with click.progressbar(length=renderer.total_chunks, label='Chunks',
                               file=sys.stderr, hidden=obj.get('quiet', False)) as bar:
            renderer.add_progress_callback(lambda completed, total: bar.update(1))
            result = renderer.render()

        path = renderer.save(result)

        click.echo(f"Render complete: {time.time() - start_time:.2f}s")
        click.echo(f"Saved: {path}")

    except Exception as e:
        click.echo(f"Error: {e}", err=True)
        if obj.get('verbose'):
            import traceback
            traceback.print_exc()
        sys.exit(1)


@main.command()
def defaults():
    """Print the default configuration as JSON (usable with --config)."""
    click.echo(json.dumps(RenderConfig().to_dict(), indent=2))


if __name__ == '__main__':
    main()
