import random
from collections import Counter

import pyarrow as pa
import pyarrow.compute as pc
import pytest

from relpyground import evaluate, optimize
from relpyground.algebra import (
    Aggregate,
    Difference,
    Intersection,
    Join,
    Projection,
    Relation,
    Rename,
    Selection,
    Union,
)
from relpyground.compute import (
    CountAggregation,
    CountAllAggregation,
    FilterNode,
    FunctionCallExpression,
    IndexLookupNode,
    ProjectNode,
    PyArrowTableDataSource,
    SumAggregation,
    col,
    conjunction,
    lit,
)
from relpyground.config import MYSQL, SQLITE
from relpyground.evaluator import QueryPlanner
from relpyground.exceptions import SchemaMismatch, UnknownRelation, UnsupportedOperation
from relpyground.index import DenseIndex, SparseIndex

INSTRUCTOR = pa.table(
    {
        "ID": [1, 2, 3, 4],
        "Name": ["A", "B", "C", "D"],
        "Dept": ["Physics", "Physics", "Math", None],
        "Salary": [100, 90, 80, None],
    }
)
TEACHES = pa.table({"TID": [1, 1, 3, 5], "Course": ["Mechanics", "Optics", "Algebra", "Poetry"]})
RELATIONS = {"Instructor": INSTRUCTOR, "Teaches": TEACHES}

INSTRUCTOR_REL = Relation.of("Instructor", INSTRUCTOR)
TEACHES_REL = Relation.of("Teaches", TEACHES)
IS_PHYSICS = FunctionCallExpression(pc.equal, col("Dept"), lit("Physics"))
TEACHES_OWN_ID = FunctionCallExpression(pc.equal, col("ID"), col("TID"))


def test_selection_projection():
    tree = Projection(["Name"], Selection(IS_PHYSICS, INSTRUCTOR_REL))
    result = evaluate(tree, RELATIONS)
    assert isinstance(result, pa.Table)
    assert result.to_pydict() == {"Name": ["A", "B"]}


def test_unknown_predicates_drop_rows():
    not_physics = FunctionCallExpression(pc.not_equal, col("Dept"), lit("Physics"))
    result = evaluate(Selection(not_physics, INSTRUCTOR_REL), RELATIONS)
    # D has no department, comparing it is unknown and the row is dropped.
    assert result.column("Name").to_pylist() == ["C"]


def test_projection_distinct():
    tree = Projection(["Dept"], INSTRUCTOR_REL, distinct=True)
    assert evaluate(tree, RELATIONS).to_pydict() == {"Dept": ["Physics", "Math", None]}
    tree = Projection(["Dept"], INSTRUCTOR_REL)
    assert evaluate(tree, RELATIONS).num_rows == 4


@pytest.mark.parametrize(
    "kind,expected",
    [
        ("inner", [("A", "Mechanics"), ("A", "Optics"), ("C", "Algebra")]),
        ("left", [("A", "Mechanics"), ("A", "Optics"), ("C", "Algebra"), ("B", None), ("D", None)]),
        ("right", [("A", "Mechanics"), ("A", "Optics"), ("C", "Algebra"), (None, "Poetry")]),
        (
            "full",
            [
                ("A", "Mechanics"),
                ("A", "Optics"),
                ("C", "Algebra"),
                ("B", None),
                ("D", None),
                (None, "Poetry"),
            ],
        ),
    ],
)
def test_joins(kind, expected):
    tree = Projection(["Name", "Course"], Join(INSTRUCTOR_REL, TEACHES_REL, TEACHES_OWN_ID, kind))
    result = evaluate(tree, RELATIONS)
    assert list(zip(*result.to_pydict().values())) == expected


def test_self_join_with_rename():
    other = Rename.qualified(INSTRUCTOR_REL, "other")
    same_dept = conjunction(
        FunctionCallExpression(pc.equal, col("Dept"), col("other.Dept")),
        FunctionCallExpression(pc.less, col("ID"), col("other.ID")),
    )
    tree = Projection(["Name", "other.Name"], Join(INSTRUCTOR_REL, other, same_dept))
    assert evaluate(tree, RELATIONS).to_pydict() == {"Name": ["A"], "other.Name": ["B"]}


def test_set_operations():
    physics = Projection(["Name"], Selection(IS_PHYSICS, INSTRUCTOR_REL))
    teachers = Projection(["Name"], Join(INSTRUCTOR_REL, TEACHES_REL, TEACHES_OWN_ID))
    assert evaluate(Union(physics, teachers), RELATIONS).column("Name").to_pylist() == ["A", "B", "C"]
    assert evaluate(Union(physics, teachers, distinct=False), RELATIONS).num_rows == 5
    assert evaluate(Difference(physics, teachers), RELATIONS).column("Name").to_pylist() == ["B"]
    assert evaluate(Intersection(physics, teachers), RELATIONS).column("Name").to_pylist() == ["A"]


def test_aggregate():
    tree = Aggregate(
        ["Dept"],
        {
            "total": SumAggregation("Salary"),
            "salaries": CountAggregation("Salary"),
            "instructors": CountAllAggregation(),
        },
        INSTRUCTOR_REL,
    )
    assert evaluate(tree, RELATIONS).to_pydict() == {
        "Dept": ["Physics", "Math", None],
        "total": [190, 80, None],
        "salaries": [2, 1, 0],
        "instructors": [2, 1, 1],
    }


def test_aggregate_without_groups_on_empty_relation():
    nobody = Selection(FunctionCallExpression(pc.equal, col("Dept"), lit("Biology")), INSTRUCTOR_REL)
    tree = Aggregate([], {"n": CountAllAggregation(), "total": SumAggregation("Salary")}, nobody)
    assert evaluate(tree, RELATIONS).to_pydict() == {"n": [0], "total": [None]}


def test_record_batch_relations():
    batch = INSTRUCTOR.to_batches()[0]
    tree = Projection(["Name"], Selection(IS_PHYSICS, Relation.of("Instructor", batch)))
    assert evaluate(tree, {"Instructor": batch}).column("Name").to_pylist() == ["A", "B"]


def test_unknown_relation():
    with pytest.raises(UnknownRelation):
        evaluate(INSTRUCTOR_REL, {"Teaches": TEACHES})


def test_relation_schema_mismatch():
    with pytest.raises(SchemaMismatch):
        evaluate(INSTRUCTOR_REL, {"Instructor": TEACHES})


def test_dialect_is_checked():
    tree = Intersection(Projection(["Name"], INSTRUCTOR_REL), Projection(["Name"], INSTRUCTOR_REL))
    with pytest.raises(UnsupportedOperation):
        evaluate(tree, RELATIONS, dialect=MYSQL)
    assert evaluate(tree, RELATIONS, dialect=SQLITE).num_rows == 4


def test_dialect_like():
    tree = Projection(["Name"], Selection(MYSQL.like(col("Dept"), "phys%"), INSTRUCTOR_REL))
    assert evaluate(tree, RELATIONS, dialect=MYSQL).column("Name").to_pylist() == ["A", "B"]


@pytest.mark.parametrize("structure", ["btree", "hash"])
def test_equality_uses_index(structure):
    indexes = {"Instructor": [DenseIndex(INSTRUCTOR, "Dept", structure=structure)]}
    tree = Projection(["Name"], Selection(IS_PHYSICS, INSTRUCTOR_REL))
    plan = QueryPlanner(RELATIONS, indexes=indexes).plan(tree)

    assert isinstance(plan, ProjectNode)
    assert isinstance(plan.child, FilterNode)
    assert isinstance(plan.child.child, IndexLookupNode)
    assert plan.child.child.key == "Physics"
    assert evaluate(tree, RELATIONS, indexes=indexes).column("Name").to_pylist() == ["A", "B"]


@pytest.mark.parametrize(
    "func,reverse,expected",
    [
        (pc.greater, False, ["C", "D"]),
        (pc.greater_equal, False, ["B", "C", "D"]),
        (pc.less, False, ["A"]),
        (pc.less_equal, False, ["A", "B"]),
        (pc.less, True, ["C", "D"]),
        (pc.greater_equal, True, ["A", "B"]),
    ],
)
def test_ranges_use_ordered_index(func, reverse, expected):
    args = (lit(2), col("ID")) if reverse else (col("ID"), lit(2))
    tree = Selection(FunctionCallExpression(func, *args), INSTRUCTOR_REL)
    indexes = {"Instructor": [SparseIndex(INSTRUCTOR, "ID", block_size=2)]}

    plan = QueryPlanner(RELATIONS, indexes=indexes).plan(tree)
    assert isinstance(plan.child, IndexLookupNode)
    assert evaluate(tree, RELATIONS, indexes=indexes).column("Name").to_pylist() == expected


def test_hash_index_not_used_for_ranges():
    tree = Selection(FunctionCallExpression(pc.greater, col("ID"), lit(2)), INSTRUCTOR_REL)
    indexes = {"Instructor": [DenseIndex(INSTRUCTOR, "ID", structure="hash")]}
    plan = QueryPlanner(RELATIONS, indexes=indexes).plan(tree)
    assert isinstance(plan.child, PyArrowTableDataSource)
    assert evaluate(tree, RELATIONS, indexes=indexes).column("Name").to_pylist() == ["C", "D"]


def test_conjunct_uses_index():
    predicate = conjunction(
        FunctionCallExpression(pc.greater, col("Salary"), lit(85)),
        IS_PHYSICS,
    )
    tree = Selection(predicate, INSTRUCTOR_REL)
    indexes = {"Instructor": [DenseIndex(INSTRUCTOR, "Dept")]}
    plan = QueryPlanner(RELATIONS, indexes=indexes).plan(tree)
    assert isinstance(plan.child, IndexLookupNode)
    assert evaluate(tree, RELATIONS, indexes=indexes).column("Name").to_pylist() == ["A", "B"]


def test_unindexed_column_scans():
    tree = Selection(FunctionCallExpression(pc.equal, col("Name"), lit("C")), INSTRUCTOR_REL)
    indexes = {"Instructor": [DenseIndex(INSTRUCTOR, "Dept")]}
    plan = QueryPlanner(RELATIONS, indexes=indexes).plan(tree)
    assert isinstance(plan.child, PyArrowTableDataSource)


def test_index_over_other_data():
    tree = Selection(FunctionCallExpression(pc.equal, col("TID"), lit(1)), TEACHES_REL)
    indexes = {"Teaches": [DenseIndex(INSTRUCTOR, "ID")]}
    # The index is on a different column name, so it is simply ignored.
    assert evaluate(tree, RELATIONS, indexes=indexes).num_rows == 2
    indexes = {"Teaches": [DenseIndex(INSTRUCTOR.rename_columns(["TID", "Course", "X", "Y"]), "TID")]}
    with pytest.raises(SchemaMismatch):
        evaluate(tree, RELATIONS, indexes=indexes)


@pytest.mark.parametrize("seed", range(5))
def test_indexed_and_scanned_results_agree(seed):
    rnd = random.Random(seed)
    data = pa.table(
        {
            "k": sorted(rnd.randint(0, 10) for _ in range(40)),
            "v": [rnd.randint(0, 100) for _ in range(40)],
        }
    )
    relation = Relation.of("data", data)
    indexes = {"data": [DenseIndex(data, "k", block_size=3), SparseIndex(data, "k", block_size=3)]}
    for func in (pc.equal, pc.less, pc.less_equal, pc.greater, pc.greater_equal):
        tree = Selection(FunctionCallExpression(func, col("k"), lit(rnd.randint(0, 10))), relation)
        scanned = evaluate(tree, {"data": data})
        indexed = evaluate(tree, {"data": data}, indexes=indexes)
        assert Counter(zip(*scanned.to_pydict().values())) == Counter(
            zip(*indexed.to_pydict().values())
        )


def test_optimized_query_with_indexes():
    tree = Projection(
        ["Name", "Course"],
        Selection(conjunction(TEACHES_OWN_ID, IS_PHYSICS), Join(INSTRUCTOR_REL, TEACHES_REL)),
    )
    indexes = {"Instructor": [DenseIndex(INSTRUCTOR, "Dept")]}
    result = evaluate(optimize(tree), RELATIONS, indexes=indexes)
    assert sorted(zip(*result.to_pydict().values())) == [("A", "Mechanics"), ("A", "Optics")]
