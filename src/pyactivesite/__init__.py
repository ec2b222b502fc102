"""
Python tool for the detection of catalytic active sites across protein structures.
Matches the pairwise geometry of small reference motifs against target structures and scores the hits by superposition RMSD.
"""
