from ipsr.pre.pointcloud import InputError, Samples, read_points
from ipsr.pre.sampling import FrameTransform, octree_sample
