from ipsr.analysis.convergence import ConvergenceMonitor
from ipsr.analysis.initializer import initialize_normals, random_unit_normals
from ipsr.analysis.projector import NormalProjector, Votes
from ipsr.analysis.spatial_index import SpatialIndex
