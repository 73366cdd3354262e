import os

import meshio
import numpy as np
import pytest

from ipsr.config import ConfigurationError, RunConfig
from ipsr.main import build_parser, main, run

from conftest import HullOracle, fibonacci_sphere


@pytest.fixture
def cloud_file(tmp_path):
    filename = str(tmp_path / "cloud.ply")
    points = fibonacci_sphere(200, radius=2.0, center=(1.0, -1.0, 3.0))
    meshio.write(filename, meshio.Mesh(points=points.astype(np.float32), cells=[]), file_format="ply", binary=False)
    return filename


def test_parser_defaults():
    args = build_parser().parse_args(["--in", "a.ply", "--out", "b.ply"])
    assert (args.iters, args.point_weight, args.depth, args.neighbors) == (30, 10.0, 10, 10)


def test_run_writes_mesh_in_input_frame(cloud_file, tmp_path):
    output = str(tmp_path / "out.ply")
    samples_out = str(tmp_path / "samples.ply")
    all_out = str(tmp_path / "all.ply")

    result = run(
        cloud_file,
        output,
        RunConfig(iterations=10, depth=6),
        HullOracle(),
        samples_out=samples_out,
        all_normals_out=all_out,
    )

    assert result.converged
    mesh = meshio.read(output)
    radii = np.linalg.norm(mesh.points - [1.0, -1.0, 3.0], axis=1)
    np.testing.assert_allclose(radii, 2.0, rtol=1e-3)

    everything = meshio.read(all_out, file_format="ply")
    normals = np.column_stack([everything.point_data[key] for key in ("nx", "ny", "nz")])
    radial = (everything.points - [1.0, -1.0, 3.0]) / 2.0
    assert np.all(np.einsum("ij,ij->i", normals, radial) > 0.9)
    assert os.path.exists(samples_out)


def test_invalid_iterations_abort_without_output(cloud_file, tmp_path):
    output = tmp_path / "out.ply"
    assert main(["--in", cloud_file, "--out", str(output), "--iters", "0"]) == 1
    assert not output.exists()


def test_infinite_point_weight_aborts(cloud_file, tmp_path):
    output = tmp_path / "out.ply"
    assert main(["--in", cloud_file, "--out", str(output), "--pointWeight", "inf"]) == 1
    assert not output.exists()


def test_wrong_extension_aborts(cloud_file, tmp_path):
    output = tmp_path / "out.obj"
    assert main(["--in", cloud_file, "--out", str(output)]) == 1
    assert not output.exists()


def test_run_validates_before_reading(tmp_path):
    oracle = HullOracle()
    with pytest.raises(ConfigurationError):
        run(str(tmp_path / "missing.ply"), str(tmp_path / "out.ply"), RunConfig(neighbors=0), oracle)
    assert oracle.calls == 0


def test_missing_input_aborts(tmp_path):
    output = tmp_path / "out.ply"
    assert main(["--in", str(tmp_path / "missing.ply"), "--out", str(output)]) == 1
    assert not output.exists()


def test_truncated_input_aborts(tmp_path):
    truncated = tmp_path / "truncated.ply"
    truncated.write_text(
        "ply\n"
        "format ascii 1.0\n"
        "element vertex 3\n"
        "property float x\n"
        "property float y\n"
        "property float z\n"
        "end_header\n"
        "0 0 0\n"
        "1 0 0\n"
    )
    output = tmp_path / "out.ply"
    assert main(["--in", str(truncated), "--out", str(output)]) == 1
    assert not output.exists()


def test_diagnostics_go_to_stderr(tmp_path, capsys):
    assert main(["--in", str(tmp_path / "missing.ply"), "--out", str(tmp_path / "out.ply")]) == 1
    captured = capsys.readouterr()
    assert captured.out == ""
    assert "missing.ply" in captured.err


def test_command_line_values_override_defaults():
    args = build_parser().parse_args(["--in", "a.ply", "--out", "b.ply", "--iters", "7", "-vv"])
    assert args.verbose == 2
    config = RunConfig().with_overrides(iterations=args.iters, depth=None)
    assert config.iterations == 7
    assert config.depth == RunConfig().depth
