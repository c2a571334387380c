"""
动态拼接 SQL 查询

按片段拼接 SQL 文本，并同步维护一个按位置绑定的参数列表：
- 片段中的 {n} 占位符在追加时重排为全局唯一的序号，
  同一个查询对象可以反复追加带 {0} 的片段而不会冲突
- 支持按条件追加（布尔条件 / 非 None / 非空串）
- 支持 IN (...) 展开，单次最多 1000 个元素
- 参数集一旦生成（首次读取 parameters）即冻结，之后不允许再追加

使用方式：
    query = (
        DynamicSqlQuery.create_line("SELECT * FROM users WHERE 1 = 1")
        .append_line_not_empty(name, "AND username = {0}")
        .append_line_in(ids, "AND id IN ({0})")
    )
    result = await session.execute(query.to_statement())
"""

import re
from typing import Any, Dict, Iterable, List, Optional, Tuple

from sqlalchemy import text
from sqlalchemy.sql.elements import TextClause


NEWLINE = "\n"
DEFAULT_IN_CLAUSE_LIMIT = 1000
PARAM_PREFIX = "p"

# {n} 参数占位；{{ 和 }} 为转义后的字面量大括号
_PLACEHOLDER = re.compile(r"(?<!\{)\{\s*(\d+)\s*\}(?!\})")
_RENDER_TOKEN = re.compile(r"\{\{|\}\}|\{\s*(\d+)\s*\}")
# 与 SQLAlchemy text() 识别绑定参数的规则一致，字面量中的 :name 需要转义
_TEXT_BIND = re.compile(r"(?<![:\w\$\\]):([\w\$]+)(?![:\w\$])")


class QueryFrozenError(RuntimeError):
    """参数集已生成后继续追加 SQL 片段"""

    def __init__(self):
        super().__init__(
            "Cannot append SQL after parameters have been materialized; "
            "read `parameters` only once all fragments are appended"
        )


class DynamicSqlQuery:
    """动态拼接的 SQL 查询"""

    # ========================================
    # 工厂方法
    # ========================================

    @classmethod
    def create(cls, sql: str, *parameters: Any) -> "DynamicSqlQuery":
        """创建初始动态拼接 SQL 查询"""
        return cls().append(sql, *parameters)

    @classmethod
    def create_line(cls, sql: str, *parameters: Any) -> "DynamicSqlQuery":
        """创建初始动态拼接 SQL 查询，并添加换行"""
        return cls().append_line(sql, *parameters)

    def __init__(self, in_clause_limit: int = DEFAULT_IN_CLAUSE_LIMIT):
        """
        Args:
            in_clause_limit: append_in 单次允许的最大元素数
        """
        # (片段文本, 是否含占位)
        self._fragments: List[Tuple[str, bool]] = []
        self._parameters: List[Any] = []
        self._frozen: Optional[Tuple[Any, ...]] = None
        self.in_clause_limit = in_clause_limit

    # ========================================
    # 属性
    # ========================================

    @property
    def sql(self) -> str:
        """拼接后的 SQL 文本（占位符为全局序号 {n}）"""
        return "".join(fragment for fragment, _ in self._fragments)

    @property
    def parameters(self) -> Tuple[Any, ...]:
        """
        参数集合

        首次读取时生成并缓存，此后查询对象不可再追加。
        """
        if self._frozen is None:
            self._frozen = tuple(self._parameters)
        return self._frozen

    @property
    def is_empty(self) -> bool:
        return not any(fragment for fragment, _ in self._fragments)

    @property
    def is_frozen(self) -> bool:
        return self._frozen is not None

    # ========================================
    # 追加片段
    # ========================================

    def append(self, sql_snippet: str, *parameters: Any) -> "DynamicSqlQuery":
        """
        添加 SQL 片段并绑定参数 {n}

        片段内的 {n} 按序号升序重排到当前参数个数之后，
        重复出现的 {n} 共用同一个参数；未被引用的参数被忽略。
        只有含占位的片段会把 {{ / }} 还原为字面量大括号，不含占位的片段原样保留。

        Raises:
            ValueError: sql_snippet 为 None
            QueryFrozenError: 参数集已生成
            IndexError: {n} 超出参数值范围
        """
        self._ensure_appendable(sql_snippet)

        places = sorted({int(match.group(1)) for match in _PLACEHOLDER.finditer(sql_snippet)})
        if not places:
            self._fragments.append((sql_snippet, False))
            return self

        for place in places:
            if place >= len(parameters):
                raise IndexError(
                    f"Placeholder {{{place}}} is out of range for {len(parameters)} parameter(s)"
                )

        start = len(self._parameters)
        remap = {place: start + offset for offset, place in enumerate(places)}
        self._fragments.append((
            _PLACEHOLDER.sub(lambda match: "{%d}" % remap[int(match.group(1))], sql_snippet),
            True,
        ))
        self._parameters.extend(parameters[place] for place in places)
        return self

    def append_line(self, sql_snippet: str, *parameters: Any) -> "DynamicSqlQuery":
        """添加 SQL 片段（可绑定参数）并在后面添加换行"""
        self._ensure_not_none(sql_snippet)
        return self.append(sql_snippet + NEWLINE, *parameters)

    def append_if(self, condition: bool, sql_snippet: str, *parameters: Any) -> "DynamicSqlQuery":
        """只有当 condition 为真时，才添加 sql_snippet 及参数"""
        self._ensure_not_none(sql_snippet)
        if condition:
            return self.append(sql_snippet, *parameters)
        return self

    def append_line_if(self, condition: bool, sql_snippet: str, *parameters: Any) -> "DynamicSqlQuery":
        """只有当 condition 为真时，才添加 sql_snippet 及参数，并添加换行"""
        self._ensure_not_none(sql_snippet)
        return self.append_if(condition, sql_snippet + NEWLINE, *parameters)

    def append_not_none(self, value: Any, sql_snippet: str) -> "DynamicSqlQuery":
        """当 value 非 None 时，添加 sql_snippet 并将 value 绑定到 {0}"""
        self._ensure_not_none(sql_snippet)
        if value is not None:
            return self.append(sql_snippet, value)
        return self

    def append_line_not_none(self, value: Any, sql_snippet: str) -> "DynamicSqlQuery":
        self._ensure_not_none(sql_snippet)
        return self.append_not_none(value, sql_snippet + NEWLINE)

    def append_not_empty(self, value: Optional[str], sql_snippet: str) -> "DynamicSqlQuery":
        """当 value 既不是 None 也不是空串时，添加 sql_snippet 并将 value 绑定到 {0}"""
        self._ensure_not_none(sql_snippet)
        if value is not None and value != "":
            return self.append(sql_snippet, value)
        return self

    def append_line_not_empty(self, value: Optional[str], sql_snippet: str) -> "DynamicSqlQuery":
        self._ensure_not_none(sql_snippet)
        return self.append_not_empty(value, sql_snippet + NEWLINE)

    def append_in(self, values: Optional[Iterable[Any]], sql_snippet: str) -> "DynamicSqlQuery":
        """
        如果给定 values 非空，添加 IN 代码片段

        片段中每个 {0} 都会展开为 "{i}, {i+1}, ..."，逐个绑定 values 中的元素。

        Raises:
            ValueError: 元素个数超出上限，或片段使用了 {0} 以外的占位
        """
        self._ensure_appendable(sql_snippet)
        if values is None:
            return self
        if isinstance(values, (str, bytes)):
            raise TypeError("append_in expects a collection of values, not a string")

        values = list(values)
        if not values:
            return self
        if len(values) > self.in_clause_limit:
            raise ValueError(
                f"IN clause has {len(values)} values, exceeding the limit of {self.in_clause_limit}"
            )
        if any(int(match.group(1)) != 0 for match in _PLACEHOLDER.finditer(sql_snippet)):
            raise ValueError("append_in only supports the {0} placeholder")

        def expand(match: "re.Match[str]") -> str:
            start = len(self._parameters)
            self._parameters.extend(values)
            return ", ".join("{%d}" % (start + i) for i in range(len(values)))

        formatted = _PLACEHOLDER.search(sql_snippet) is not None
        self._fragments.append((_PLACEHOLDER.sub(expand, sql_snippet), formatted))
        return self

    def append_line_in(self, values: Optional[Iterable[Any]], sql_snippet: str) -> "DynamicSqlQuery":
        self._ensure_not_none(sql_snippet)
        return self.append_in(values, sql_snippet + NEWLINE)

    # ========================================
    # 执行桥接（SQLAlchemy）
    # ========================================

    def bind_params(self) -> Dict[str, Any]:
        """按 p0, p1, ... 命名的绑定参数（会生成参数集）"""
        return {f"{PARAM_PREFIX}{i}": value for i, value in enumerate(self.parameters)}

    def render(self) -> str:
        """
        渲染为 text() 可用的 SQL

        {n} 渲染为 :p{n} 绑定参数；含占位的片段还原 {{ / }}；
        字面量中的 :name 转义为 \\:name，不会被当作绑定参数。
        """
        return "".join(
            _render_fragment(fragment) if formatted else _escape_colons(fragment)
            for fragment, formatted in self._fragments
        )

    def to_statement(self) -> TextClause:
        """
        转换为可执行的 TextClause

        注意：会生成参数集，此后查询对象被冻结。
        """
        params = self.bind_params()
        statement = text(self.render())
        if params:
            statement = statement.bindparams(**params)
        return statement

    # ========================================
    # 辅助方法
    # ========================================

    @staticmethod
    def _ensure_not_none(sql_snippet: Optional[str]) -> None:
        if sql_snippet is None:
            raise ValueError("sql_snippet must not be None")

    def _ensure_appendable(self, sql_snippet: Optional[str]) -> None:
        self._ensure_not_none(sql_snippet)
        if self._frozen is not None:
            raise QueryFrozenError()

    def __str__(self) -> str:
        return self.sql

    def __repr__(self) -> str:
        return f"<DynamicSqlQuery(sql={self.sql!r}, parameters={len(self._parameters)})>"


def _escape_colons(literal: str) -> str:
    return _TEXT_BIND.sub(lambda match: "\\" + match.group(0), literal)


def _render_fragment(fragment: str) -> str:
    parts = []
    position = 0
    for match in _RENDER_TOKEN.finditer(fragment):
        parts.append(_escape_colons(fragment[position:match.start()]))
        token = match.group(0)
        if token == "{{":
            parts.append("{")
        elif token == "}}":
            parts.append("}")
        else:
            parts.append(f":{PARAM_PREFIX}{int(match.group(1))}")
        position = match.end()
    parts.append(_escape_colons(fragment[position:]))
    return "".join(parts)


def as_query(sql: "str | DynamicSqlQuery", *parameters: Any) -> DynamicSqlQuery:
    """将字符串（可带 {n} 占位及参数）统一转换为 DynamicSqlQuery"""
    if isinstance(sql, DynamicSqlQuery):
        if parameters:
            raise ValueError("parameters cannot be combined with a DynamicSqlQuery")
        return sql
    return DynamicSqlQuery.create(sql, *parameters)
