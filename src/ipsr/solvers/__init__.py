from ipsr.solvers.oracle import Mesh, ReconstructionOracle, make_oracle
from ipsr.solvers.refinement import RefinementOrchestrator, RefinementResult, refine_normals
