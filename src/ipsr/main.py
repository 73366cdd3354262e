"""
Command Line Entry Point
========================
Reads a point cloud, estimates oriented normals by iterative Poisson
reconstruction and writes the reconstructed surface.

Usage:
    $ python -m ipsr --in input.ply --out output.ply [--iters 30]
      [--pointWeight 10] [--depth 10] [--neighbors 10]
"""
from __future__ import annotations

import argparse
import logging
import sys
from typing import Optional, Sequence

from ipsr.config import ConfigurationError, RunConfig
from ipsr.logging_config import setup_logging, verbosity_to_level
from ipsr.post.export import propagate_normals, write_mesh, write_oriented_points, write_samples
from ipsr.pre.pointcloud import InputError, check_ply_extension, read_points
from ipsr.pre.sampling import FrameTransform, octree_sample
from ipsr.solvers.oracle import ORACLES, ReconstructionOracle, make_oracle
from ipsr.solvers.refinement import RefinementOrchestrator, RefinementResult

logger = logging.getLogger(__name__)


def run(
    input_name: str,
    output_name: str,
    config: RunConfig,
    oracle: ReconstructionOracle,
    samples_out: Optional[str] = None,
    all_normals_out: Optional[str] = None,
) -> RefinementResult:
    """
    Full file-to-file pipeline.

    Args:
        input_name: Input point cloud (.ply).
        output_name: Output mesh (.ply).
        config: Run parameters.
        oracle: Reconstruction used by the refinement loop.
        samples_out: Optional path for the refined samples with normals.
        all_normals_out: Optional path for every input point with the normal of its nearest sample.

    Returns:
        The refinement result (mesh in the solver frame).

    Raises:
        ConfigurationError: Invalid parameters, raised before any file is read.
        InputError: Unusable input file.
    """
    config.validate()
    check_ply_extension(input_name, role="input")
    for name in (output_name, samples_out, all_normals_out):
        if name:
            check_ply_extension(name, role="output")

    # 1) Load and move into the solver frame
    points = read_points(input_name)
    frame = FrameTransform.fit(points)
    samples = octree_sample(frame.forward(points), depth=config.depth)

    # 2) Refine
    orchestrator = RefinementOrchestrator(oracle=oracle, config=config)
    result = orchestrator.run(samples)

    # 3) Export in the input frame
    write_mesh(output_name, result.mesh.transformed(frame.inverse))
    if samples_out:
        write_samples(samples_out, samples, frame)
    if all_normals_out:
        normals = propagate_normals(points, samples, orchestrator.index, frame)
        write_oriented_points(all_normals_out, points, normals)

    return result


def build_parser() -> argparse.ArgumentParser:
    defaults = RunConfig()
    parser = argparse.ArgumentParser(
        prog="ipsr",
        description="Iterative Poisson Surface Reconstruction (iPSR)",
    )
    parser.add_argument("--in", dest="input", required=True, help="input .ply model")
    parser.add_argument("--out", dest="output", required=True, help="output .ply model")
    parser.add_argument("--iters", type=int, default=defaults.iterations,
                        help=f"maximum number of iterations, default {defaults.iterations}")
    parser.add_argument("--pointWeight", dest="point_weight", type=float, default=defaults.point_weight,
                        help=f"screened weight of SPSR, default {defaults.point_weight:g}")
    parser.add_argument("--depth", type=int, default=defaults.depth,
                        help=f"maximum depth of the octree, default {defaults.depth}")
    parser.add_argument("--neighbors", type=int, default=defaults.neighbors,
                        help=f"number of the nearest neighbors to search, default {defaults.neighbors}")
    parser.add_argument("--oracle", choices=sorted(ORACLES), default="pymeshlab",
                        help="Poisson solver binding, default pymeshlab")
    parser.add_argument("--samples-out", default=None, help="optional .ply for the sample points with normals")
    parser.add_argument("--all-normals-out", default=None, help="optional .ply for all input points with normals")
    parser.add_argument("--log-file", default=None, help="optional log file")
    parser.add_argument("-v", "--verbose", action="count", default=0, help="debug logging")
    parser.add_argument("-q", "--quiet", action="store_true", help="only warnings and errors")
    return parser


def main(argv: Optional[Sequence[str]] = None) -> int:
    args = build_parser().parse_args(argv)
    setup_logging(level=verbosity_to_level(args.verbose, args.quiet), log_file=args.log_file)

    try:
        config = RunConfig().with_overrides(
            iterations=args.iters,
            point_weight=args.point_weight,
            depth=args.depth,
            neighbors=args.neighbors,
        )
    except ConfigurationError as e:
        logger.error(str(e))
        return 1

    logger.info("Iterative Poisson Surface Reconstruction (iPSR)")
    logger.info(f"--in          {args.input}")
    logger.info(f"--out         {args.output}")
    logger.info(f"--iters       {config.iterations}")
    logger.info(f"--pointWeight {config.point_weight:f}")
    logger.info(f"--depth       {config.depth}")
    logger.info(f"--neighbors   {config.neighbors}")

    try:
        run(
            input_name=args.input,
            output_name=args.output,
            config=config,
            oracle=make_oracle(args.oracle),
            samples_out=args.samples_out,
            all_normals_out=args.all_normals_out,
        )
    except (ConfigurationError, InputError) as e:
        logger.error(str(e))
        return 1
    except Exception as e:
        logger.exception(f"Reconstruction failed: {e}")
        raise

    return 0


if __name__ == "__main__":
    sys.exit(main())
