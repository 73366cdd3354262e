"""
Entry Point Script (Bootstrap)
==============================
Runs the command line tool straight from a source checkout.

Why is this file needed?
------------------------
It is located outside the 'src' package and puts 'src' on 'sys.path', so
'python run.py --in cloud.ply --out mesh.ply' works without installing.
"""
import os
import sys

current_dir: str = os.path.dirname(os.path.abspath(__file__))
src_path: str = os.path.join(current_dir, 'src')
sys.path.insert(0, src_path)

from ipsr.main import main

if __name__ == "__main__":
    sys.exit(main())
