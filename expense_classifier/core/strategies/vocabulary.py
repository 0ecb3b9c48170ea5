"""
Keyword lists shared by the profile, contextual and fallback strategies
"""

FOOD_DRINK = [
    'カフェ', 'コーヒー', '珈琲', 'レストラン', '食事', '飲食', 'スタバ', 'スターバックス',
    'マクドナルド', 'エナジー', 'ランチ', '弁当', '定食', 'cafe', 'coffee', 'restaurant', 'lunch',
]

CAFE = ['カフェ', 'コーヒー', '珈琲', 'スタバ', 'スターバックス', 'ドトール', 'タリーズ', 'cafe', 'coffee']

ENERGY_DRINK = ['エナジー', 'レッドブル', 'モンスター', '栄養ドリンク', 'red bull']

CLIENT_MEAL = ['会食', '接待', '商談', '打ち合わせ', '打合せ', '会議']

BUSINESS_INTENT = [
    '会議', '商談', '打ち合わせ', '打合せ', '営業', 'プレゼン', '企画', '開発', '設計', '制作',
    'meeting', 'client',
]

EQUIPMENT = [
    'pc', 'パソコン', 'コンピューター', 'モニター', '机', '椅子', 'プリンター', 'カメラ', '機材',
    'equipment', 'computer', 'laptop', 'monitor', 'printer', 'camera', 'desk', 'chair',
]

TRANSPORT = ['タクシー', 'taxi', '駅', '電車', 'jr', '新幹線', '地下鉄', 'バス', '駐車', 'パーキング']
TAXI = ['タクシー', 'taxi']
PARKING = ['駐車', 'パーキング', 'parking']

COMMUNICATION = [
    'docomo', 'ドコモ', 'au', 'softbank', 'ソフトバンク', '楽天モバイル', '電話', '通信',
    '携帯', 'スマホ', 'プロバイダ', 'インターネット',
]

EDUCATION = ['書籍', '本屋', '技術書', 'udemy', 'coursera', 'セミナー', '研修', '勉強会', '講座', 'スクール']

# Signals that an unclassifiable expense is still business spending
BUSINESS_HINTS = [
    '株式会社', '(株)', '事務所', '会議', '出張', 'ビジネス', '業務', '取引先', '法人', '御中',
    'office', 'business', 'invoice',
]
