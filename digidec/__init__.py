"""
Discrete exterior calculus on digital domains

Cells of a set of digital points are indexed in Khalimsky coordinates, and form the primal
complex; the dual complex shares its index spaces, with dual k-cells identified with primal (n-k)-cells

It aims to provide all required operations in a fully vectorized manner; derivative and hodge
operators are assembled as scipy sparse matrices, tagged with the form spaces they map between,
and solved with a choice of direct and iterative strategies

"""
