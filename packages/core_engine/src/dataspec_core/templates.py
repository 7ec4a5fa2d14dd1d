"""Starter Markdown documents written by ``dataspec new`` and the ``define`` command."""

from datetime import date
from typing import Optional

from dataspec_core.models import PLACEHOLDER

TABLE_DESCRIPTION_HINT = "[请填写表的业务描述，如：用于每日销售分析报表]"
METRIC_DESCRIPTION_HINT = "[请填写指标的业务含义，说明统计对象、时间范围和口径]"

TABLE_TEMPLATE = """\
# 表定义：{name}

## 基本信息
- **表名：** {name}
- **中文名：** [请填写]
- **负责人：** {owner}
- **更新频率：** daily
- **数据来源：** [请填写上游数据源]

## 表描述
{description}

## 字段定义

| 字段名 | 类型 | 说明 | 是否必填 | 示例 |
|--------|------|------|---------|------|
| id | STRING | 主键ID | 是 | 12345 |
| biz_date | DATE | 业务日期 | 是 | 2025-01-15 |
| create_time | TIMESTAMP | 创建时间 | 是 | 2025-01-15 10:30:00 |
| update_time | TIMESTAMP | 更新时间 | 否 | 2025-01-15 10:30:00 |

> 提示：请根据实际情况添加、修改或删除字段

## 分区字段
- **分区键：** dt
- **分区策略：** 按天分区（格式：YYYYMMDD）

## 数据质量规则
- id 不能为空且不能重复
- biz_date 不能为空
- create_time 不能为空

## 下游消费
- [请填写下游报表或应用]

## 变更历史
- {today}: 初始创建

---

## 开发说明

```sql
-- 查询最近7天的数据
SELECT *
FROM {name}
WHERE dt >= DATE_SUB(CURRENT_DATE, 7)
  AND dt < CURRENT_DATE
LIMIT 100;
```

- 查询时必须添加分区过滤条件（dt），避免全表扫描
- 如需修改表结构，请先咨询负责人
"""

METRIC_TEMPLATE = """\
# 指标定义：{name}

## 基本信息
- **指标名称：** {name}
- **指标分类：** [请填写]
- **业务口径负责人：** {owner}
- **主表：** [请填写]

## 业务定义
{description}

## 计算公式

```
[请填写]
```

## SQL 逻辑

```sql
[请填写 SQL 实现]
```

## 维度
- 日期
- [请填写其他维度]

## 相关指标
- [请填写]

## 变更历史
- {today}: 初始创建
"""


def _fill(template: str, name: str, owner: Optional[str], description: Optional[str], today: Optional[date], hint: str) -> str:
    return template.format(
        name=name,
        owner=owner or PLACEHOLDER,
        description=description or hint,
        today=(today or date.today()).isoformat(),
    )


def table_template(
    name: str,
    owner: Optional[str] = None,
    description: Optional[str] = None,
    today: Optional[date] = None,
) -> str:
    return _fill(TABLE_TEMPLATE, name, owner, description, today, TABLE_DESCRIPTION_HINT)


def metric_template(
    name: str,
    owner: Optional[str] = None,
    description: Optional[str] = None,
    today: Optional[date] = None,
) -> str:
    return _fill(METRIC_TEMPLATE, name, owner, description, today, METRIC_DESCRIPTION_HINT)
