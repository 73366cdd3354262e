from ipsr.post.export import propagate_normals, write_mesh, write_oriented_points, write_samples
