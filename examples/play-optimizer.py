import logging

import pyarrow as pa
import pyarrow.compute as pc

from relpyground import evaluate, optimize
from relpyground.algebra import Join, Projection, Relation, Selection, explain
from relpyground.compute import FunctionCallExpression, col, conjunction, lit
from relpyground.index import DenseIndex

logging.basicConfig(level=logging.DEBUG)

instructor = pa.table(
    {
        "ID": [1, 2, 3, 4],
        "Name": ["Einstein", "Feynman", "Gauss", "Noether"],
        "Dept": ["Physics", "Physics", "Math", "Math"],
    }
)
teaches = pa.table(
    {
        "TID": [1, 2, 2, 3, 4],
        "Course": ["Relativity", "QED", "Lectures", "Number Theory", "Algebra"],
    }
)

# SELECT Name, Course FROM Instructor, Teaches
# WHERE ID = TID AND Dept = 'Physics'
query = Projection(
    ["Name", "Course"],
    Selection(
        conjunction(
            FunctionCallExpression(pc.equal, col("ID"), col("TID")),
            FunctionCallExpression(pc.equal, col("Dept"), lit("Physics")),
        ),
        Join(Relation.of("Instructor", instructor), Relation.of("Teaches", teaches)),
    ),
)
print(explain(query))
print("---")
optimized = optimize(query)
print(explain(optimized))
print("---")
print(
    evaluate(
        optimized,
        {"Instructor": instructor, "Teaches": teaches},
        indexes={"Instructor": [DenseIndex(instructor, "Dept")]},
    )
)
